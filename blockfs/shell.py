"""Interactive and batch command shell over the simulated file system."""

from __future__ import annotations

import sys
from pathlib import Path

from .core import FileSystem, FileSystemError
from .disk import Disk
from .operations import FileOperations, OperationError

DATA_DIR = Path("dados")
DISK_PATH = DATA_DIR / "meu_so.disk"
DISK_SIZE = 10 * 1024 * 1024
BLOCK_SIZE = 4096

_RULE = "----------------------------------"


class Shell:
    """Parses command lines and runs them against a set of file operations."""

    def __init__(self, operations: FileOperations, stdout=None, stderr=None):
        self.operations = operations
        self.stdout = stdout if stdout is not None else sys.stdout
        self.stderr = stderr if stderr is not None else sys.stderr
        self.cwd = "/"
        self._commands = {
            "ls": self._ls,
            "mkdir": self._mkdir,
            "cd": self._cd,
            "write": self._write,
            "cat": self._cat,
            "rm": self._rm,
            "rmdir": self._rmdir,
            "mv": self._mv,
            "verbose": self._verbose,
        }

    # ----------------------------------------------------------------- output

    def _out(self, text: str = "") -> None:
        print(text, file=self.stdout)

    def _err(self, text: str) -> None:
        print(text, file=self.stderr)

    def _out_bytes(self, data: bytes) -> None:
        buffer = getattr(self.stdout, "buffer", None)
        if buffer is not None:
            self.stdout.flush()
            buffer.write(data)
            buffer.flush()
        else:
            self.stdout.write(data.decode("utf-8", errors="replace"))

    def _require(self, args: list[str], count: int, usage: str) -> bool:
        if len(args) < count:
            self._err(usage)
            return False
        return True

    # ------------------------------------------------------------------ paths

    def build_full_path(self, path: str) -> str:
        """Turn a path relative to the working directory into an absolute one."""
        if path.startswith("/"):
            return path
        if self.cwd == "/":
            return f"/{path}"
        return f"{self.cwd}/{path}"

    # --------------------------------------------------------------- commands

    def _ls(self, args: list[str]) -> None:
        path = self.build_full_path(args[0] if args else ".")
        self._out(f"Listando conteudo de: {path}")
        self._out(_RULE)
        names = self.operations.ls(path)
        for name in names:
            self._out(name)
        try:
            self.operations.check_path_is_dir(path)
        except OperationError:
            return
        self._out(_RULE)

    def _mkdir(self, args: list[str]) -> None:
        if self._require(args, 1, "mkdir: operando faltando"):
            path = self.build_full_path(args[0])
            self.operations.mkdir(path)
            self._out(f"Diretorio '{path}' criado com sucesso.")

    def _cd(self, args: list[str]) -> None:
        if self._require(args, 1, "cd: operando faltando"):
            path = self.build_full_path(args[0])
            self.operations.check_path_is_dir(path)
            if len(path) > 1 and path.endswith("/"):
                path = path[:-1]
            self.cwd = path

    def _write(self, args: list[str]) -> None:
        if self._require(args, 2, "Uso: write <arq_simulado> <arq_real>"):
            path = self.build_full_path(args[0])
            self.operations.write(path, args[1])
            self._out(f"Arquivo '{path}' escrito com sucesso.")

    def _cat(self, args: list[str]) -> None:
        if self._require(args, 1, "cat: operando faltando"):
            self._out_bytes(self.operations.cat(self.build_full_path(args[0])))

    def _rm(self, args: list[str]) -> None:
        if self._require(args, 1, "rm: operando faltando"):
            path = self.build_full_path(args[0])
            self.operations.rm(path)
            self._out(f"Arquivo '{path}' removido com sucesso.")

    def _rmdir(self, args: list[str]) -> None:
        if self._require(args, 1, "rmdir: operando faltando"):
            path = self.build_full_path(args[0])
            self.operations.rmdir(path)
            self._out(f"Diretorio '{path}' removido com sucesso.")

    def _mv(self, args: list[str]) -> None:
        if self._require(args, 2, "Uso: mv <origem> <destino>"):
            old_path = self.build_full_path(args[0])
            new_path = self.build_full_path(args[1])
            self.operations.mv(old_path, new_path)
            self._out(f"'{old_path}' renomeado para '{new_path}'.")

    def _verbose(self, args: list[str]) -> None:
        usage = "Uso: verbose <on|off>"
        if not self._require(args, 1, usage):
            return
        if args[0] == "on":
            self.operations.fs.verbose = True
            self._out("Modo verboso ativado.")
        elif args[0] == "off":
            self.operations.fs.verbose = False
            self._out("Modo verboso desativado.")
        else:
            self._err(usage)

    # ------------------------------------------------------------------ loop

    def execute(self, line: str) -> bool:
        """Run one command line; return False when the shell should stop."""
        tokens = line.split()[:3]
        if not tokens:
            return True
        command, *args = tokens
        if command == "exit":
            return False
        handler = self._commands.get(command)
        if handler is None:
            self._err(f"Comando desconhecido: '{command}'")
            return True
        try:
            handler(args)
        except FileSystemError as exc:
            self._err(str(exc))
        return True

    def run(self, stream, interactive: bool = False) -> None:
        """Read commands from ``stream`` until it ends or ``exit`` is given."""
        if interactive:
            self._out("Bem-vindo ao simulador de Sistema de Arquivos!")
            self._out("Comandos: ls, mkdir, cd, write, cat, rm, rmdir, mv, verbose, exit")
            self._out()
        while True:
            if interactive:
                self.stdout.write(f"meu_fs:{self.cwd}$ ")
                self.stdout.flush()
            line = stream.readline()
            if not line:
                break
            if not interactive:
                self.stdout.write(f"Executando: {line}")
            if not self.execute(line.rstrip("\n")):
                break


def main(argv=None) -> int:
    """Format the disk image if needed, mount it and run the shell."""
    args = sys.argv[1:] if argv is None else list(argv)
    if len(args) > 1:
        print("Uso: blockfs [arquivo_de_script]", file=sys.stderr)
        return 1

    DATA_DIR.mkdir(mode=0o700, exist_ok=True)
    disk = Disk(DISK_PATH)
    fs = FileSystem(disk)

    if not DISK_PATH.exists():
        print("Arquivo de disco nao encontrado. Formatando um novo...")
        try:
            fs.format(DISK_SIZE, BLOCK_SIZE)
        except FileSystemError as exc:
            print(f"Erro crítico: {exc}", file=sys.stderr)
            return 1
        print("Formatacao concluida.\n")

    print("--- Montando o Sistema de Arquivos ---")
    try:
        fs.mount()
    except FileSystemError as exc:
        print(exc, file=sys.stderr)
        print("Nao foi possivel montar o sistema de arquivos. Encerrando.", file=sys.stderr)
        return 1
    print("--------------------------------------\n")

    shell = Shell(FileOperations(fs))
    try:
        if args:
            print(f"Executando em Modo em Lote a partir de '{args[0]}'...")
            try:
                script = open(args[0], "r", encoding="utf-8")
            except OSError as exc:
                print(f"Nao foi possivel abrir o arquivo de script: {exc}", file=sys.stderr)
                return 1
            with script:
                shell.run(script, interactive=False)
        else:
            shell.run(sys.stdin, interactive=True)
        print("\n--- Desmontando o Sistema de Arquivos ---")
    finally:
        fs.unmount()
    return 0


if __name__ == "__main__":
    sys.exit(main())
"""Directory and file operations on top of a mounted :class:`FileSystem`."""

from __future__ import annotations

from pathlib import Path

from .core import (
    DIRECT_BLOCKS,
    DIRENTRY_SIZE,
    MODE_DIRECTORY,
    MODE_FILE,
    DirEntry,
    FileSystem,
    FileSystemError,
    Inode,
    _now,
)
from .disk import DiskError


class OperationError(FileSystemError):
    """Raised when a user-level file operation cannot be carried out."""


def _split(path: str) -> tuple[str, str]:
    """Split an absolute path into its parent directory and final name."""
    head, _, name = path.rpartition("/")
    return head or "/", name


class FileOperations:
    """ls, mkdir, write, cat, rm, rmdir and mv over a mounted file system."""

    def __init__(self, fs: FileSystem):
        self.fs = fs

    # ------------------------------------------------------------------ blocks

    @property
    def _block_size(self) -> int:
        return self.fs.superblock().block_size

    def _read_block(self, block_num: int) -> bytes:
        try:
            return self.fs.disk.read_block(block_num)
        except DiskError as exc:
            raise OperationError(str(exc)) from exc

    def _write_block(self, block_num: int, data: bytes) -> None:
        try:
            self.fs.disk.write_block(block_num, data)
        except DiskError as exc:
            raise OperationError(str(exc)) from exc

    def _read_entries(self, block_num: int) -> list[DirEntry]:
        data = self._read_block(block_num)
        count = self._block_size // DIRENTRY_SIZE
        return [
            DirEntry.unpack(data[offset : offset + DIRENTRY_SIZE])
            for offset in range(0, count * DIRENTRY_SIZE, DIRENTRY_SIZE)
        ]

    def _write_entries(self, block_num: int, entries: list[DirEntry]) -> None:
        self._write_block(block_num, b"".join(entry.pack() for entry in entries))

    @staticmethod
    def _blocks(inode: Inode):
        return (block for block in inode.direct_blocks if block != 0)

    # ----------------------------------------------------------------- lookups

    def _find_entry(self, dir_inode_num: int, name: str) -> DirEntry | None:
        directory = self.fs.read_inode(dir_inode_num)
        if not directory.is_dir:
            return None
        for block_num in self._blocks(directory):
            for entry in self._read_entries(block_num):
                if not entry.is_free and entry.name == name:
                    return entry
        return None

    def _lookup(self, path: str) -> tuple[int, Inode] | None:
        """Walk an absolute path from the root; None if any component is missing."""
        current = 0
        inode = self.fs.read_inode(current)
        for component in (part for part in path.split("/") if part):
            entry = self._find_entry(current, component)
            if entry is None:
                return None
            current = entry.inode_number
            inode = self.fs.read_inode(current)
        return current, inode

    def _lookup_dir(self, path: str) -> tuple[int, Inode] | None:
        found = self._lookup(path)
        if found is None or not found[1].is_dir:
            return None
        return found

    def _add_entry(self, parent_num: int, name: str, inode_num: int) -> bool:
        parent = self.fs.read_inode(parent_num)
        for block_num in self._blocks(parent):
            entries = self._read_entries(block_num)
            for index, entry in enumerate(entries):
                if entry.is_free:
                    entries[index] = DirEntry(name, inode_num)
                    self._write_entries(block_num, entries)
                    parent.modification_time = _now()
                    self.fs.write_inode(parent_num, parent)
                    return True
        return False

    def _remove_entry(self, parent: Inode, matches) -> bool:
        for block_num in self._blocks(parent):
            entries = self._read_entries(block_num)
            for index, entry in enumerate(entries):
                if not entry.is_free and matches(entry):
                    entries[index] = DirEntry()
                    self._write_entries(block_num, entries)
                    return True
        return False

    # -------------------------------------------------------------- operations

    def ls(self, path: str) -> list[str]:
        """Return the names in a directory, or the file's own name for a file."""
        found = self._lookup(path)
        if found is None:
            raise OperationError(
                f"ls: nao foi possivel acessar '{path}': Arquivo ou diretorio nao encontrado"
            )
        _, inode = found
        if not inode.is_dir:
            return [path.rpartition("/")[2]]
        names = []
        for block_num in inode.direct_blocks:
            if block_num == 0:
                break
            names.extend(entry.name for entry in self._read_entries(block_num) if not entry.is_free)
        return names

    def check_path_is_dir(self, path: str) -> None:
        """Raise unless ``path`` names an existing directory."""
        found = self._lookup(path)
        if found is None:
            raise OperationError(f"cd: {path}: Arquivo ou diretorio nao encontrado")
        if not found[1].is_dir:
            raise OperationError(f"cd: {path}: Nao e um diretorio")

    def mkdir(self, path: str) -> int:
        """Create an empty directory and return its inode number."""
        parent_path, name = _split(path)
        if not name:
            raise OperationError(f"mkdir: nao foi possivel criar o diretorio '{path}': Nome invalido")
        parent = self._lookup_dir(parent_path)
        if parent is None:
            raise OperationError(
                f"mkdir: nao foi possivel criar o diretorio '{path}': Diretorio pai nao existe"
            )
        parent_num, _ = parent
        if self._find_entry(parent_num, name) is not None:
            raise OperationError(
                f"mkdir: nao foi possivel criar o diretorio '{path}': "
                "Arquivo ou diretorio ja existe"
            )

        try:
            inode_num = self.fs.alloc_inode()
        except FileSystemError as exc:
            raise OperationError("mkdir: nao ha espaco livre no disco.") from exc
        try:
            block_num = self.fs.alloc_block()
        except FileSystemError as exc:
            self.fs.free_inode(inode_num)
            raise OperationError("mkdir: nao ha espaco livre no disco.") from exc

        now = _now()
        inode = Inode(
            mode=MODE_DIRECTORY,
            link_count=2,
            size_in_bytes=self._block_size,
            creation_time=now,
            modification_time=now,
            last_access_time=now,
        )
        inode.direct_blocks[0] = block_num
        self.fs.write_inode(inode_num, inode)
        self._write_entries(block_num, [DirEntry(".", inode_num), DirEntry("..", parent_num)])

        if not self._add_entry(parent_num, name, inode_num):
            self.fs.free_block(block_num)
            self.fs.free_inode(inode_num)
            raise OperationError(
                "mkdir: erro ao adicionar entrada no diretorio pai (pode estar cheio)."
            )
        return inode_num

    def write(self, simulated_path: str, real_path) -> int:
        """Copy a host file into the file system and return the new inode number.

        Only the first twelve blocks of the host file are stored; the recorded
        size is that of the whole host file.
        """
        try:
            content = Path(real_path).read_bytes()
        except OSError as exc:
            raise OperationError(f"Nao foi possivel abrir o arquivo real: {exc}") from exc

        parent_path, name = _split(simulated_path)
        if not name:
            raise OperationError(f"write: Nome de arquivo invalido em '{simulated_path}'.")
        parent = self._lookup_dir(parent_path)
        if parent is None:
            raise OperationError(f"write: Diretorio pai '{parent_path}' nao encontrado.")
        parent_num, _ = parent

        try:
            inode_num = self.fs.alloc_inode()
        except FileSystemError as exc:
            raise OperationError("write: Nao ha i-nodes livres.") from exc

        now = _now()
        inode = Inode(
            mode=MODE_FILE,
            link_count=1,
            size_in_bytes=len(content),
            creation_time=now,
            modification_time=now,
            last_access_time=now,
        )
        block_size = self._block_size
        stored = content[: DIRECT_BLOCKS * block_size]
        allocated: list[int] = []
        for index, offset in enumerate(range(0, len(stored), block_size)):
            try:
                block_num = self.fs.alloc_block()
            except FileSystemError as exc:
                for block in allocated:
                    self.fs.free_block(block)
                self.fs.free_inode(inode_num)
                raise OperationError("write: Sem espaco em disco para alocar bloco.") from exc
            allocated.append(block_num)
            self._write_block(block_num, stored[offset : offset + block_size])
            inode.direct_blocks[index] = block_num

        self.fs.write_inode(inode_num, inode)
        if not self._add_entry(parent_num, name, inode_num):
            for block in allocated:
                self.fs.free_block(block)
            self.fs.free_inode(inode_num)
            raise OperationError(
                "write: erro ao adicionar entrada no diretorio pai (pode estar cheio)."
            )
        return inode_num

    def cat(self, path: str) -> bytes:
        """Return the stored contents of a regular file."""
        found = self._lookup(path)
        if found is None:
            raise OperationError(f"cat: {path}: Arquivo ou diretorio nao encontrado")
        _, inode = found
        if inode.mode != MODE_FILE:
            raise OperationError(f"cat: {path}: Nao e um arquivo")

        block_size = self._block_size
        remaining = inode.size_in_bytes
        chunks = []
        for block_num in inode.direct_blocks:
            if block_num == 0 or remaining <= 0:
                break
            take = min(remaining, block_size)
            chunks.append(self._read_block(block_num)[:take])
            remaining -= take
        return b"".join(chunks)

    def rm(self, path: str) -> None:
        """Delete a regular file and release its blocks and inode."""
        parent_path, name = _split(path)
        parent = self._lookup_dir(parent_path)
        entry = self._find_entry(parent[0], name) if parent is not None and name else None
        if entry is None:
            raise OperationError(f"rm: {path}: Arquivo nao encontrado.")
        target = self.fs.read_inode(entry.inode_number)
        if target.mode != MODE_FILE:
            raise OperationError(f"rm: {path}: Nao e um arquivo. Use 'rmdir' para diretorios.")

        for block_num in self._blocks(target):
            self.fs.free_block(block_num)
        self.fs.free_inode(entry.inode_number)
        self._remove_entry(parent[1], lambda e: e.inode_number == entry.inode_number)

    def rmdir(self, path: str) -> None:
        """Delete an empty directory."""
        if path == "/":
            raise OperationError("rmdir: Nao e possivel remover o diretorio raiz.")
        found = self._lookup(path)
        if found is None:
            raise OperationError(f"rmdir: {path}: Diretorio nao encontrado.")
        inode_num, target = found
        if not target.is_dir:
            raise OperationError(f"rmdir: {path}: Nao e um diretorio.")
        parent_path, name = _split(path)
        if name in ("", ".", ".."):
            raise OperationError(f"rmdir: {path}: Argumento invalido.")

        first_block = target.direct_blocks[0]
        used = sum(1 for entry in self._read_entries(first_block) if not entry.is_free)
        if used > 2:
            raise OperationError(f"rmdir: {path}: O diretorio nao esta vazio.")

        if self.fs.verbose:
            print(f"Liberando bloco de dados {first_block} e i-node {inode_num} para {path}")
        self.fs.free_block(first_block)
        self.fs.free_inode(inode_num)
        parent = self._lookup_dir(parent_path)
        if parent is not None:
            self._remove_entry(parent[1], lambda e: e.name == name)

    def mv(self, old_path: str, new_path: str) -> None:
        """Rename an entry inside its own parent directory."""
        old_parent, old_name = _split(old_path)
        new_parent, new_name = _split(new_path)
        if old_parent != new_parent:
            raise OperationError("mv: Mover entre diretorios diferentes ainda nao e suportado.")

        parent = self._lookup_dir(old_parent)
        if parent is not None and old_name:
            for block_num in self._blocks(parent[1]):
                entries = self._read_entries(block_num)
                for index, entry in enumerate(entries):
                    if not entry.is_free and entry.name == old_name:
                        entries[index] = DirEntry(new_name, entry.inode_number)
                        self._write_entries(block_num, entries)
                        return
        raise OperationError(f"mv: Nao foi possivel encontrar o arquivo de origem '{old_path}'.")
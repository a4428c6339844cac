import io

import pytest

from blockfs.core import FileSystem
from blockfs.disk import Disk
from blockfs.operations import FileOperations
from blockfs.shell import DISK_PATH, Shell, main


@pytest.fixture
def shell(tmp_path):
    disk = Disk(tmp_path / "test.disk")
    fs = FileSystem(disk)
    fs.format(1024 * 1024, 4096)
    fs.mount()
    sh = Shell(FileOperations(fs), io.StringIO(), io.StringIO())
    yield sh
    fs.unmount()


def out(sh):
    return sh.stdout.getvalue()


def err(sh):
    return sh.stderr.getvalue()


def test_build_full_path_absolute_and_relative(shell):
    assert shell.build_full_path("/abs/x") == "/abs/x"
    assert shell.build_full_path("x") == "/x"
    shell.execute("mkdir a")
    shell.execute("cd a")
    assert shell.build_full_path("x") == "/a/x"


def test_exit_and_blank_lines(shell):
    assert shell.execute("exit") is False
    assert shell.execute("") is True
    assert shell.execute("   ") is True
    assert err(shell) == ""


def test_unknown_command(shell):
    assert shell.execute("foo bar") is True
    assert "Comando desconhecido: 'foo'" in err(shell)


def test_mkdir_and_ls(shell):
    shell.execute("mkdir docs")
    assert "Diretorio '/docs' criado com sucesso." in out(shell)
    shell.execute("ls")
    lines = out(shell).splitlines()
    assert "Listando conteudo de: /." in lines
    assert "docs" in lines
    assert "." in lines and ".." in lines


def test_missing_operands(shell):
    for command in ("mkdir", "cd", "cat", "rm", "rmdir"):
        shell.execute(command)
        assert f"{command}: operando faltando" in err(shell)
    shell.execute("write /x")
    assert "Uso: write <arq_simulado> <arq_real>" in err(shell)
    shell.execute("mv /x")
    assert "Uso: mv <origem> <destino>" in err(shell)


def test_duplicate_mkdir_reports_error(shell):
    shell.execute("mkdir docs")
    shell.execute("mkdir docs")
    assert "Arquivo ou diretorio ja existe" in err(shell)


def test_cd_strips_trailing_slash(shell):
    shell.execute("mkdir a")
    shell.execute("cd /a/")
    assert shell.cwd == "/a"
    shell.execute("cd /")
    assert shell.cwd == "/"


def test_cd_to_missing_keeps_cwd(shell):
    shell.execute("cd nowhere")
    assert shell.cwd == "/"
    assert "cd: /nowhere: Arquivo ou diretorio nao encontrado" in err(shell)


def test_write_and_cat(shell, tmp_path):
    host = tmp_path / "host.txt"
    host.write_bytes(b"hello world\n")
    shell.execute(f"write f.txt {host}")
    assert "Arquivo '/f.txt' escrito com sucesso." in out(shell)
    shell.execute("cat f.txt")
    assert out(shell).endswith("hello world\n")


def test_cd_into_file_is_rejected(shell, tmp_path):
    host = tmp_path / "host.txt"
    host.write_bytes(b"data")
    shell.execute(f"write /f {host}")
    shell.execute("cd /f")
    assert shell.cwd == "/"
    assert "cd: /f: Nao e um diretorio" in err(shell)


def test_ls_of_file_prints_name(shell, tmp_path):
    host = tmp_path / "host.txt"
    host.write_bytes(b"data")
    shell.execute(f"write /f {host}")
    shell.execute("ls /f")
    lines = out(shell).splitlines()
    assert lines[-1] == "f"


def test_mv_and_rm(shell, tmp_path):
    host = tmp_path / "host.txt"
    host.write_bytes(b"abc")
    shell.execute(f"write /one {host}")
    shell.execute("mv one two")
    assert "'/one' renomeado para '/two'." in out(shell)
    shell.execute("rm two")
    assert "Arquivo '/two' removido com sucesso." in out(shell)
    shell.execute("cat two")
    assert "cat: /two: Arquivo ou diretorio nao encontrado" in err(shell)


def test_rmdir(shell):
    shell.execute("mkdir d")
    shell.execute("rmdir d")
    assert "Diretorio '/d' removido com sucesso." in out(shell)
    shell.execute("rmdir /")
    assert "rmdir: Nao e possivel remover o diretorio raiz." in err(shell)


def test_verbose_toggle(shell):
    shell.execute("verbose on")
    assert shell.operations.fs.verbose is True
    shell.execute("verbose off")
    assert shell.operations.fs.verbose is False
    shell.execute("verbose maybe")
    assert "Uso: verbose <on|off>" in err(shell)


def test_run_batch_echoes_and_stops_at_exit(shell):
    script = io.StringIO("mkdir /a\nexit\nmkdir /b\n")
    shell.run(script, interactive=False)
    text = out(shell)
    assert "Executando: mkdir /a\n" in text
    assert "Executando: exit\n" in text
    assert "/b" not in text


def test_run_interactive_prints_prompt(shell):
    shell.run(io.StringIO("exit\n"), interactive=True)
    text = out(shell)
    assert "Bem-vindo ao simulador de Sistema de Arquivos!" in text
    assert "meu_fs:/$ " in text


def test_main_rejects_extra_arguments(tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    assert main(["a", "b"]) == 1
    assert "Uso:" in capsys.readouterr().err


def test_main_missing_script(tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    assert main([str(tmp_path / "missing.txt")]) == 1
    assert "Nao foi possivel abrir o arquivo de script" in capsys.readouterr().err


def test_main_formats_and_persists(tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    first = tmp_path / "first.txt"
    first.write_text("mkdir /docs\nexit\nmkdir /never\n")
    assert main([str(first)]) == 0
    text = capsys.readouterr().out
    assert "Arquivo de disco nao encontrado. Formatando um novo..." in text
    assert "Diretorio '/docs' criado com sucesso." in text
    assert "/never" not in text
    assert (tmp_path / DISK_PATH).exists()

    second = tmp_path / "second.txt"
    second.write_text("ls /\n")
    assert main([str(second)]) == 0
    text = capsys.readouterr().out
    assert "Formatando" not in text
    assert "docs" in text.splitlines()
    assert "never" not in text.splitlines()
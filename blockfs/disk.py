"""Block device emulated by a regular file on the host."""

from __future__ import annotations

from pathlib import Path


class DiskError(Exception):
    """Raised when the disk image cannot be created, opened, read or written."""


class Disk:
    """A file-backed disk addressed in fixed-size blocks."""

    def __init__(self, path):
        self.path = Path(path)
        self.block_size = 0
        self._file = None

    @property
    def is_mounted(self) -> bool:
        return self._file is not None

    def __enter__(self) -> "Disk":
        self.mount()
        return self

    def __exit__(self, *exc_info) -> None:
        self.unmount()

    def format(self, disk_size: int, block_size: int) -> None:
        """Create (or truncate) the image file and grow it to ``disk_size`` bytes."""
        if disk_size < 1:
            raise DiskError(f"Tamanho de disco invalido: {disk_size}")
        try:
            with open(self.path, "wb") as image:
                image.seek(disk_size - 1)
                image.write(b"\0")
        except OSError as exc:
            raise DiskError(f"Erro ao criar o arquivo de disco: {exc}") from exc
        self.block_size = block_size

    def mount(self) -> None:
        """Open the image for reading and writing; a no-op if already open."""
        if self._file is not None:
            return
        try:
            self._file = open(self.path, "r+b")
        except OSError as exc:
            raise DiskError(f"Erro ao montar o disco: {exc}") from exc

    def unmount(self) -> None:
        """Close the image if it is open."""
        if self._file is not None:
            self._file.close()
            self._file = None

    def set_block_size(self, block_size: int) -> None:
        self.block_size = block_size

    def _seek(self, block_num: int) -> None:
        if self._file is None:
            raise DiskError("O disco nao esta montado.")
        if self.block_size <= 0:
            raise DiskError("Tamanho de bloco nao definido.")
        if block_num < 0:
            raise DiskError(f"Numero de bloco invalido: {block_num}")
        try:
            self._file.seek(block_num * self.block_size)
        except OSError as exc:
            raise DiskError(f"Erro de seek no bloco {block_num}: {exc}") from exc

    def read_block(self, block_num: int) -> bytes:
        """Return one block; bytes past the end of the image read as zeros."""
        self._seek(block_num)
        try:
            data = self._file.read(self.block_size)
        except OSError as exc:
            raise DiskError(f"Erro de leitura no bloco {block_num}: {exc}") from exc
        return data.ljust(self.block_size, b"\0")

    def write_block(self, block_num: int, data: bytes) -> None:
        """Write one block; shorter data is padded with zeros."""
        data = bytes(data)
        if self.block_size > 0 and len(data) > self.block_size:
            raise DiskError(
                f"Dados com {len(data)} bytes excedem o bloco de {self.block_size} bytes."
            )
        self._seek(block_num)
        try:
            self._file.write(data.ljust(self.block_size, b"\0"))
            self._file.flush()
        except OSError as exc:
            raise DiskError(f"Erro de escrita no bloco {block_num}: {exc}") from exc
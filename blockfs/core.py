"""On-disk structures, formatting, mounting and allocation of the file system."""

from __future__ import annotations

import struct
import time
from dataclasses import dataclass, field, replace

from .disk import Disk, DiskError

MAGIC_NUMBER = 0xDA7A
MAX_FILENAME_LENGTH = 28
DIRECT_BLOCKS = 12
MODE_FILE = 0
MODE_DIRECTORY = 1

_SUPERBLOCK = struct.Struct("<8I")
_INODE = struct.Struct(f"<3I4x3q{DIRECT_BLOCKS}I2I")
_DIRENTRY = struct.Struct(f"<{MAX_FILENAME_LENGTH}sI")

SUPERBLOCK_SIZE = _SUPERBLOCK.size
INODE_SIZE = _INODE.size
DIRENTRY_SIZE = _DIRENTRY.size

_BOOT_BLOCK_SIZE = 4096


class FileSystemError(Exception):
    """Raised when a file-system level operation fails."""


@dataclass
class Superblock:
    magic_number: int = 0
    total_blocks: int = 0
    total_inodes: int = 0
    block_size: int = 0
    inode_bitmap_start_block: int = 0
    block_bitmap_start_block: int = 0
    inode_table_start_block: int = 0
    data_blocks_start_block: int = 0

    def pack(self) -> bytes:
        return _SUPERBLOCK.pack(
            self.magic_number,
            self.total_blocks,
            self.total_inodes,
            self.block_size,
            self.inode_bitmap_start_block,
            self.block_bitmap_start_block,
            self.inode_table_start_block,
            self.data_blocks_start_block,
        )

    @classmethod
    def unpack(cls, data: bytes) -> "Superblock":
        if len(data) < SUPERBLOCK_SIZE:
            raise FileSystemError("Dados insuficientes para o superbloco.")
        return cls(*_SUPERBLOCK.unpack_from(data))


@dataclass
class Inode:
    mode: int = MODE_FILE
    link_count: int = 0
    size_in_bytes: int = 0
    creation_time: int = 0
    modification_time: int = 0
    last_access_time: int = 0
    direct_blocks: list[int] = field(default_factory=lambda: [0] * DIRECT_BLOCKS)
    single_indirect_block: int = 0
    double_indirect_block: int = 0

    @property
    def is_dir(self) -> bool:
        return self.mode == MODE_DIRECTORY

    def pack(self) -> bytes:
        blocks = list(self.direct_blocks)
        if len(blocks) > DIRECT_BLOCKS:
            raise FileSystemError(f"Um i-node tem no maximo {DIRECT_BLOCKS} blocos diretos.")
        blocks += [0] * (DIRECT_BLOCKS - len(blocks))
        return _INODE.pack(
            self.mode,
            self.link_count,
            self.size_in_bytes,
            self.creation_time,
            self.modification_time,
            self.last_access_time,
            *blocks,
            self.single_indirect_block,
            self.double_indirect_block,
        )

    @classmethod
    def unpack(cls, data: bytes) -> "Inode":
        if len(data) < INODE_SIZE:
            raise FileSystemError("Dados insuficientes para o i-node.")
        values = _INODE.unpack_from(data)
        mode, links, size, created, modified, accessed = values[:6]
        direct = list(values[6 : 6 + DIRECT_BLOCKS])
        single, double = values[6 + DIRECT_BLOCKS :]
        return cls(mode, links, size, created, modified, accessed, direct, single, double)


@dataclass
class DirEntry:
    name: str = ""
    inode_number: int = 0

    @property
    def is_free(self) -> bool:
        return not self.name

    def pack(self) -> bytes:
        encoded = self.name.encode("utf-8")[: MAX_FILENAME_LENGTH - 1]
        return _DIRENTRY.pack(encoded, self.inode_number)

    @classmethod
    def unpack(cls, data: bytes) -> "DirEntry":
        if len(data) < DIRENTRY_SIZE:
            raise FileSystemError("Dados insuficientes para a entrada de diretorio.")
        raw_name, inode_number = _DIRENTRY.unpack_from(data)
        name = raw_name.split(b"\0", 1)[0].decode("utf-8", errors="ignore")
        return cls(name, inode_number)


def _now() -> int:
    return int(time.time())


class FileSystem:
    """Superblock, bitmaps and inode table stored on a :class:`Disk`."""

    def __init__(self, disk: Disk, verbose: bool = False):
        self.disk = disk
        self.verbose = verbose
        self._sb = Superblock()
        self._mounted = False

    @property
    def is_mounted(self) -> bool:
        return self._mounted

    def superblock(self) -> Superblock:
        """Return a copy of the superblock currently loaded."""
        return replace(self._sb)

    def _trace(self, message: str) -> None:
        if self.verbose:
            print(f"   [Verbose] {message}")

    def _require_mounted(self) -> None:
        if not self._mounted:
            raise FileSystemError("O sistema de arquivos nao esta montado.")

    def _read(self, block_num: int) -> bytes:
        try:
            return self.disk.read_block(block_num)
        except DiskError as exc:
            raise FileSystemError(str(exc)) from exc

    def _write(self, block_num: int, data: bytes) -> None:
        try:
            self.disk.write_block(block_num, data)
        except DiskError as exc:
            raise FileSystemError(str(exc)) from exc

    def mount(self) -> None:
        """Load the superblock and check the magic number."""
        if self._mounted:
            return
        try:
            self.disk.mount()
            self.disk.set_block_size(_BOOT_BLOCK_SIZE)
            boot = self.disk.read_block(0)
        except DiskError as exc:
            self.disk.unmount()
            raise FileSystemError(f"Falha ao ler o superbloco do disco: {exc}") from exc
        sb = Superblock.unpack(boot)
        if sb.magic_number != MAGIC_NUMBER:
            self.disk.unmount()
            raise FileSystemError(
                "Magic number invalido! O disco pode nao estar formatado ou esta corrompido."
            )
        self._sb = sb
        self.disk.set_block_size(sb.block_size)
        self._mounted = True
        print("Sistema de arquivos montado com sucesso.")

    def unmount(self) -> None:
        self.disk.unmount()
        self._mounted = False

    def format(self, disk_size: int, block_size: int) -> Superblock:
        """Create a fresh image with zeroed metadata and an empty root directory."""
        print("Iniciando a formatação lógica do sistema de arquivos...")
        if block_size < INODE_SIZE:
            raise FileSystemError(
                f"Tamanho de bloco {block_size} menor que um i-node ({INODE_SIZE} bytes)."
            )

        total_blocks = disk_size // block_size
        total_inodes = total_blocks // 4
        inode_bitmap_blocks = (total_inodes // 8 + block_size - 1) // block_size
        block_bitmap_blocks = (total_blocks // 8 + block_size - 1) // block_size
        inode_table_blocks = (total_inodes * INODE_SIZE + block_size - 1) // block_size

        sb = Superblock(
            magic_number=MAGIC_NUMBER,
            total_blocks=total_blocks,
            total_inodes=total_inodes,
            block_size=block_size,
            inode_bitmap_start_block=1,
        )
        sb.block_bitmap_start_block = sb.inode_bitmap_start_block + inode_bitmap_blocks
        sb.inode_table_start_block = sb.block_bitmap_start_block + block_bitmap_blocks
        sb.data_blocks_start_block = sb.inode_table_start_block + inode_table_blocks
        if total_inodes < 1 or sb.data_blocks_start_block >= total_blocks:
            raise FileSystemError("Disco pequeno demais para o sistema de arquivos.")

        if self._mounted:
            self.unmount()
        try:
            self.disk.format(disk_size, block_size)
            self.disk.mount()
        except DiskError as exc:
            raise FileSystemError(str(exc)) from exc
        self.disk.set_block_size(block_size)
        self._sb = sb
        self._mounted = True
        try:
            self._write(0, sb.pack())
            self._trace("Superbloco gravado no disco.")
            zeros = bytes(block_size)
            for block_num in range(1, sb.data_blocks_start_block):
                self._write(block_num, zeros)
            self._trace("Blocos de metadados zerados.")

            print("Criando o diretorio raiz (/) ...")
            root_inode_num = self.alloc_inode()
            root_block_num = self.alloc_block()
            now = _now()
            root = Inode(
                mode=MODE_DIRECTORY,
                link_count=2,
                size_in_bytes=block_size,
                creation_time=now,
                modification_time=now,
                last_access_time=now,
            )
            root.direct_blocks[0] = root_block_num
            self.write_inode(root_inode_num, root)
            entries = DirEntry(".", root_inode_num).pack() + DirEntry("..", root_inode_num).pack()
            self._write(root_block_num, entries)
            print(
                f"Diretorio raiz criado com sucesso no i-node {root_inode_num} "
                f"e bloco de dados {root_block_num}."
            )
        finally:
            self.unmount()
        return replace(sb)

    def _inode_location(self, inode_num: int) -> tuple[int, int]:
        if not 0 <= inode_num < self._sb.total_inodes:
            raise FileSystemError(f"Numero de i-node invalido: {inode_num}")
        per_block = self._sb.block_size // INODE_SIZE
        block_num = self._sb.inode_table_start_block + inode_num // per_block
        return block_num, (inode_num % per_block) * INODE_SIZE

    def read_inode(self, inode_num: int) -> Inode:
        self._require_mounted()
        self._trace(f"Lendo i-node {inode_num} do disco...")
        block_num, offset = self._inode_location(inode_num)
        return Inode.unpack(self._read(block_num)[offset : offset + INODE_SIZE])

    def write_inode(self, inode_num: int, inode: Inode) -> None:
        self._require_mounted()
        self._trace(f"Escrevendo i-node {inode_num} no disco...")
        block_num, offset = self._inode_location(inode_num)
        block = bytearray(self._read(block_num))
        block[offset : offset + INODE_SIZE] = inode.pack()
        self._write(block_num, bytes(block))

    def _bit_position(self, number: int) -> tuple[int, int, int]:
        bits_per_block = self._sb.block_size * 8
        return (
            number // bits_per_block,
            (number % bits_per_block) // 8,
            0x80 >> (number % 8),
        )

    def _first_free(self, bitmap_start: int, numbers: range) -> int | None:
        cached_index = None
        bitmap = bytearray()
        for number in numbers:
            index, byte, mask = self._bit_position(number)
            if index != cached_index:
                bitmap = bytearray(self._read(bitmap_start + index))
                cached_index = index
            if not bitmap[byte] & mask:
                bitmap[byte] |= mask
                self._write(bitmap_start + index, bytes(bitmap))
                return number
        return None

    def _clear_bit(self, bitmap_start: int, number: int) -> None:
        index, byte, mask = self._bit_position(number)
        bitmap = bytearray(self._read(bitmap_start + index))
        bitmap[byte] &= ~mask & 0xFF
        self._write(bitmap_start + index, bytes(bitmap))

    def alloc_inode(self) -> int:
        """Mark the first free inode as used and return its number."""
        self._require_mounted()
        self._trace("Procurando i-node livre no bitmap...")
        found = self._first_free(
            self._sb.inode_bitmap_start_block, range(self._sb.total_inodes)
        )
        if found is None:
            raise FileSystemError("Nao ha i-nodes livres.")
        self._trace(f"I-node {found} alocado.")
        return found

    def alloc_block(self) -> int:
        """Mark the first free data block as used and return its number."""
        self._require_mounted()
        self._trace("Procurando bloco de dados livre no bitmap...")
        found = self._first_free(
            self._sb.block_bitmap_start_block,
            range(self._sb.data_blocks_start_block, self._sb.total_blocks),
        )
        if found is None:
            raise FileSystemError("Nao ha blocos de dados livres.")
        self._trace(f"Bloco de dados {found} alocado.")
        return found

    def free_inode(self, inode_num: int) -> None:
        """Clear an inode's bit; numbers out of range are ignored."""
        self._require_mounted()
        if not 0 <= inode_num < self._sb.total_inodes:
            return
        self._trace(f"Liberando i-node {inode_num} no bitmap...")
        self._clear_bit(self._sb.inode_bitmap_start_block, inode_num)

    def free_block(self, block_num: int) -> None:
        """Clear a block's bit; numbers out of range are ignored."""
        self._require_mounted()
        if not 0 <= block_num < self._sb.total_blocks:
            return
        self._trace(f"Liberando bloco de dados {block_num} no bitmap...")
        self._clear_bit(self._sb.block_bitmap_start_block, block_num)
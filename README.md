# blockfs

`blockfs` simulates a small Unix-style file system stored inside one disk image
file. The image holds a superblock, an i-node bitmap, a block bitmap, an i-node
table and data blocks. Files and directories are addressed through i-nodes with
twelve direct block pointers.

## Installing

```
pip install .
```

## Using the shell

```
blockfs              # interactive shell
blockfs script.txt   # run commands from a file, one per line
```

The disk image lives at `dados/meu_so.disk`, relative to the directory the
command is started from; the `dados` directory is created if missing. When no
image exists yet, a new 10 MiB image with 4096-byte blocks is created and
formatted, with an empty root directory. In script mode each line is echoed as
`Executando: <line>` before it runs.

Commands understood by the shell:

| Command                      | Effect                                              |
|------------------------------|-----------------------------------------------------|
| `ls [path]`                  | list a directory (or print a file's name)           |
| `mkdir <path>`               | create a directory                                  |
| `cd <path>`                  | change the working directory                        |
| `write <sim_path> <real>`    | copy a host file into the simulated file system     |
| `cat <path>`                 | print a simulated file                              |
| `rm <path>`                  | remove a file                                       |
| `rmdir <path>`               | remove an empty directory                           |
| `mv <old> <new>`             | rename an entry within the same directory           |
| `verbose on` / `verbose off` | trace i-node and bitmap activity                    |
| `exit`                       | leave the shell                                     |

Relative paths are resolved against the working directory. Errors are printed
to standard error and the shell carries on with the next command.

## Using it as a library

```python
from blockfs.disk import Disk
from blockfs.core import FileSystem
from blockfs.operations import FileOperations

disk = Disk("image.disk")
fs = FileSystem(disk, verbose=False)
fs.format(1024 * 1024, 4096)   # returns the new Superblock; leaves the image unmounted
fs.mount()

ops = FileOperations(fs)
ops.mkdir("/docs")                          # returns the new i-node number
ops.write("/docs/notes.txt", "notes.txt")   # copies a host file, returns its i-node number
data = ops.cat("/docs/notes.txt")           # bytes
ops.mv("/docs/notes.txt", "/docs/todo.txt")
names = ops.ls("/docs")                     # [".", "..", "todo.txt"]

fs.unmount()
```

`blockfs.shell.Shell` runs the same commands against a `FileOperations`
object: `Shell.execute(line)` runs one line, `Shell.run(stream, interactive)`
reads lines until the stream ends or `exit` is given.

Lower-level pieces:

- `blockfs.disk.Disk` reads and writes fixed-size blocks of the image file and
  can be used as a context manager (mount on enter, unmount on exit).
- `blockfs.core.FileSystem` formats and mounts the image, reads and writes
  i-nodes, and allocates and frees i-nodes and data blocks from the bitmaps.
- `Superblock`, `Inode` and `DirEntry` in `blockfs.core` pack to and unpack
  from their on-disk byte layout.

Failures raise `DiskError`, `FileSystemError` or `OperationError` (a subclass
of `FileSystemError`).

## Limits

- A file keeps at most twelve data blocks; when a larger host file is written,
  only its first twelve blocks are stored, though the recorded size is that of
  the whole host file.
- A directory uses a single data block, so it holds as many entries as fit in
  one block (128 with 4096-byte blocks, counting `.` and `..`).
- Names are cut to 27 bytes.
- The indirect block pointers of an i-node are stored but never used.
- `mv` only renames within the same directory; it does not move entries
  between directories.
- There are no permissions, owners or links beyond what the commands above do.

## Running the tests

```
pip install .[test]
pytest
```
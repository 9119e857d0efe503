import pathlib as pl

FileType = str | pl.Path
EnvType = dict[str, str]
# Container port -> host port (`None` lets the runtime pick a free host port)
PortBindingsType = dict[int, int | None]

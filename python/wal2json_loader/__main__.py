from .cli import app

app(prog_name="wal2json-loader")

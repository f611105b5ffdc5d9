from assho.cli import app

app(prog_name="assho")

from formoverlay.cli import app

app()

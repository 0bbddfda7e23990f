"""thunder-bootstrap CLI commands."""

from thunder_bootstrap.commands.init_cmd import init
from thunder_bootstrap.commands.run import run
from thunder_bootstrap.commands.setup import setup
from thunder_bootstrap.commands.start import start
from thunder_bootstrap.commands.steps import steps

__all__ = ["init", "run", "setup", "start", "steps"]

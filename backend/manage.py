from schooldesk import create_app
from schooldesk.seed import seed_accounts
from flask.cli import with_appcontext
from flask_migrate import upgrade, migrate, init
import click

app = create_app()

@app.cli.command("db-init")
@with_appcontext
def db_init():
    """Initializes migrations directory"""
    init()

@app.cli.command("db-migrate")
@click.option("-m", "--message", default=None, help="Revision message")
@with_appcontext
def db_migrate(message):
    """Creates a new migration"""
    migrate(message=message)

@app.cli.command("db-upgrade")
@with_appcontext
def db_upgrade():
    """Applies migrations"""
    upgrade()

@app.cli.command("seed")
@with_appcontext
def seed():
    """Creates the default admin and teacher accounts"""
    created = seed_accounts()
    if created:
        click.echo("Created: " + ", ".join(created))
    else:
        click.echo("Accounts already exist")

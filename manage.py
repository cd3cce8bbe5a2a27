from campus import create_app
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
@with_appcontext
def db_migrate():
    """Creates a new migration"""
    migrate()

@app.cli.command("db-upgrade")
@with_appcontext
def db_upgrade():
    """Applies migrations"""
    upgrade()

@app.cli.command("seed")
@click.option("--reset", is_flag=True, help="Delete existing rows before seeding.")
@with_appcontext
def seed(reset):
    """Loads demo school, classes and profiles"""
    from campus.seed import seed_data
    counts = seed_data(reset=reset)
    click.echo(f"Seeded: {counts}")

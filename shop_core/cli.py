# shop_core/cli.py

import click

from .extensions import db, get_datastore, get_identity
from .identity import EmailAlreadyRegistered


def register_commands(app):
    @app.cli.command("init-db")
    def init_db():
        """Create all tables."""
        db.create_all()
        click.echo("✅ Database tables created.")

    @app.cli.command("reset-db")
    @click.confirmation_option(prompt="This drops every table. Continue?")
    def reset_db():
        db.drop_all()
        db.create_all()
        click.echo("✅ Database reset complete.")

    @app.cli.command("create-manager")
    @click.option("--email", prompt=True)
    @click.option("--password", prompt=True, hide_input=True, confirmation_prompt=True)
    @click.option("--first-name", default="Shop", show_default=True)
    @click.option("--last-name", default="Manager", show_default=True)
    def create_manager(email, password, first_name, last_name):
        """Create an active manager account, or promote an existing one."""
        identity = get_identity()
        datastore = get_datastore()
        try:
            uid = identity.register(email, password)
        except EmailAlreadyRegistered:
            uid = identity.find_account(email).uid
            click.echo("ℹ️ Account exists, promoting to manager.")

        record = datastore.get('clients', uid)
        if record is None:
            datastore.set('clients', uid, {
                'first_name': first_name,
                'last_name': last_name,
                'email': email.strip().lower(),
                'role': 'manager',
                'is_active': True,
            })
        else:
            datastore.update('clients', uid, {'role': 'manager', 'is_active': True})
        click.echo(f"✅ Manager ready: {email}")

import click


@click.group()
def main() -> None:
    """Dave - self-service cloud development workspaces."""


@main.command()
@click.option("--host", default=None, help="Bind host (default: from DAVE_HOST or 0.0.0.0).")
@click.option("--port", default=None, type=int, help="Bind port (default: from DAVE_PORT or 8443).")
@click.option("--reload", is_flag=True, default=False, help="Enable auto-reload for development.")
def api(host: str | None, port: int | None, reload: bool) -> None:
    """Start the User API server."""
    import uvicorn
    from loguru import logger

    from dave.user_api.log import setup_logging
    from dave.user_api.settings import get_settings

    settings = get_settings()
    missing = [
        f"DAVE_{field.upper()}"
        for field in ("auth_domain", "auth_audience", "auth_client_id")
        if not getattr(settings, field)
    ]
    if missing:
        raise click.ClickException(f"Token verification is not configured; set {', '.join(missing)}.")

    setup_logging(settings.log_level)
    logger.info(
        "Starting user API ({} store, table {}, auth domain {})",
        settings.workspace_store,
        settings.workspace_table,
        settings.auth_domain,
    )

    uvicorn.run(
        "dave.user_api.app:app",
        host=host or settings.host,
        port=port or settings.port,
        reload=reload,
        log_level="warning",  # uvicorn's own logging is intercepted by loguru
    )


# ---------------------------------------------------------------------------
# Workspace store management
# ---------------------------------------------------------------------------


@main.group()
def store() -> None:
    """Workspace store management commands."""


@store.command()
@click.option("--table", default=None, help="Table name (default: from DAVE_WORKSPACE_TABLE or workspaces).")
def init(table: str | None) -> None:
    """Create the DynamoDB workspace table and its indexes if missing."""
    from dave.user_api.aws import create_client
    from dave.user_api.log import setup_logging
    from dave.user_api.settings import get_settings
    from dave.user_api.store.dynamodb import DynamoWorkspaceStore

    settings = get_settings()
    setup_logging(settings.log_level)

    client = create_client("dynamodb", settings.aws_region, settings.dynamodb_endpoint)
    table_name = table or settings.workspace_table
    if DynamoWorkspaceStore(client, table_name).ensure_table():
        click.echo(f"Table {table_name} created.")
    else:
        click.echo(f"Table {table_name} already exists.")


if __name__ == "__main__":
    main()

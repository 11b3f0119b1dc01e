"""Instance user-data rendering with Jinja2 templates.

Templates live in ``provisioning/templates`` and receive:

- ``username``            : str  -- workspace owner
- ``hostname``            : str  -- workspace name
- ``language_runtimes``   : list[{"language": str, "version": str}]
- ``packages_to_install`` : list[str]

Example template::

    hostnamectl set-hostname {{ hostname }}
    {% for runtime in language_runtimes %}
    mise use --global {{ runtime.language }}@{{ runtime.version }}
    {% endfor %}
"""

from __future__ import annotations

import jinja2
from loguru import logger

from dave.user_api.errors import InternalError
from dave.user_api.models.workspace import split_language_runtime


class UserDataRenderer:
    """Render bootstrap scripts for workspace instances."""

    def __init__(self, env: jinja2.Environment | None = None) -> None:
        self._env = env or jinja2.Environment(  # noqa: S701
            loader=jinja2.PackageLoader("dave.user_api.provisioning", "templates"),
            autoescape=False,
            undefined=jinja2.StrictUndefined,
            keep_trailing_newline=True,
        )

    def render(self, template_name: str, context: dict[str, object]) -> str:
        try:
            return self._env.get_template(template_name).render(**context)
        except jinja2.TemplateError as exc:
            logger.opt(exception=exc).error("Error creating user data from {}", template_name)
            raise InternalError from exc


def user_data_context(
    username: str,
    hostname: str,
    language_runtimes: list[str],
    packages_to_install: list[str],
) -> dict[str, object]:
    """Build the template context from workspace fields."""
    runtimes = []
    for runtime in language_runtimes:
        language, version = split_language_runtime(runtime)
        runtimes.append({"language": language, "version": version})
    return {
        "username": username,
        "hostname": hostname,
        "language_runtimes": runtimes,
        "packages_to_install": list(packages_to_install),
    }

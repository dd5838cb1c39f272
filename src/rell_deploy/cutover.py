"""Point production traffic at a release and record the promoted tag."""

from rell_deploy import nginx, tags
from rell_deploy.config import Settings


def promote(settings: Settings, tag: str) -> None:
    """Rewrite the production config, then record `tag` as applied.

    The tag file is only written once the config is in place.
    """
    nginx.write_production_config(settings, tag)
    tags.write_tag(settings.tag_file, tag)

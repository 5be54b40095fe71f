from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv
from omegaconf import DictConfig, OmegaConf
from pydantic import BaseModel

# Environment values from a local .env feed the oc.env interpolations below
load_dotenv()

_HERE = Path(__file__).resolve()
_CANDIDATE_CONFIG_PATHS = [_HERE.parent / "config/config.yaml"]

if os.environ.get("SHIPPING_GATEWAY_CONFIG"):
    _CANDIDATE_CONFIG_PATHS.insert(0, Path(os.environ["SHIPPING_GATEWAY_CONFIG"]))

CONFIG_PATH = next((path for path in _CANDIDATE_CONFIG_PATHS if path.exists()), None)
if CONFIG_PATH is None:  # pragma: no cover - fail fast in misconfigured environments
    raise FileNotFoundError("Gateway config.yaml could not be located; set SHIPPING_GATEWAY_CONFIG or reinstall the package.")


class GraphSettings(BaseModel):
    tenant_id: str = ""
    client_id: str = ""
    client_secret: str = ""
    authority: str = "https://login.microsoftonline.com"
    scope: str = "https://graph.microsoft.com/.default"
    base_url: str = "https://graph.microsoft.com/v1.0"
    timeout_seconds: float = 30.0
    token_cache: bool = False


class SiteSettings(BaseModel):
    host: str = ""
    path: str = ""


class ListSettings(BaseModel):
    primary: str = ""
    secondary: str = ""
    lookup_field: str = "Customer"
    foreign_key_field: str = "Customer-ID"


class RendererSettings(BaseModel):
    chrome_bin: Optional[str] = None
    launch_args: List[str] = ["--no-sandbox", "--disable-setuid-sandbox"]
    page_format: str = "A4"
    timeout_ms: int = 30000


class MailSettings(BaseModel):
    transport: str = "smtp"
    host: str = "smtp.gmail.com"
    port: int = 465
    use_ssl: bool = True
    user: str = ""
    password: str = ""
    timeout_seconds: float = 30.0
    sender_name: str = "Shipping Desk"
    sender_address: Optional[str] = None
    subject: str = "New Shipping Instruction Submission"
    attachment_name: str = "shipping-instruction.pdf"
    fallback_recipient: Optional[str] = None
    aws_region: Optional[str] = None


class ServerSettings(BaseModel):
    host: str = "0.0.0.0"
    port: int = 3000
    log_level: str = "INFO"
    cors_origins: List[str] = ["*"]


class GatewaySettings(BaseModel):
    graph: GraphSettings = GraphSettings()
    site: SiteSettings = SiteSettings()
    lists: ListSettings = ListSettings()
    renderer: RendererSettings = RendererSettings()
    mail: MailSettings = MailSettings()
    server: ServerSettings = ServerSettings()


@lru_cache(maxsize=1)
def _load_default_config() -> DictConfig:
    if not CONFIG_PATH.exists():
        raise FileNotFoundError(f"Default config not found at {CONFIG_PATH}")
    return OmegaConf.load(CONFIG_PATH)


def get_default_config_container(resolve: bool = False) -> Dict[str, Any]:
    config = _load_default_config()
    return OmegaConf.to_container(config, resolve=resolve, enum_to_str=True)  # type: ignore[return-value]


def make_settings(overrides: Optional[Dict[str, Any]] = None) -> GatewaySettings:
    """
    Build validated settings from the YAML defaults merged with overrides.

    Interpolations are resolved against the current environment at call time,
    so callers that change ``os.environ`` get fresh values.

    Args:
        overrides: Nested mapping merged on top of the defaults,
            e.g. ``{"lists": {"primary": "Bookings"}}``

    Returns:
        GatewaySettings with every section populated
    """
    base = OmegaConf.create(get_default_config_container(resolve=False))
    OmegaConf.set_struct(base, True)

    merged = OmegaConf.merge(base, OmegaConf.create(overrides or {}))
    container = OmegaConf.to_container(merged, resolve=True, enum_to_str=True)
    return GatewaySettings.model_validate(container)


@lru_cache(maxsize=1)
def get_settings() -> GatewaySettings:
    return make_settings()

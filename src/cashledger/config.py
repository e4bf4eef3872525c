"""Engine configuration.

Configuration is read once from a YAML document into an immutable
:class:`EngineConfig` and handed to the services that need it. To pick up a
changed file, call :func:`load_config` again and build a new engine.

Example document::

    transaction_fees:
      enabled: true
      cash_debit: {enabled: true, fee_type: flat, fee_value: 2.50}
    hold_settings:
      enabled: true
      bounce_threshold: 3
      period_days: 90
    limits:
      max_transaction_amount: 25000
      proposal_ttl_seconds: 300
      lock_timeout_seconds: 5
    fees_account_number: FEES
"""

import logging
import os
from dataclasses import dataclass, field
from decimal import Decimal
from pathlib import Path
from typing import Any, Mapping, Optional

import yaml

from cashledger.domain.errors import ConfigurationError
from cashledger.domain.fee_schedule import FeeSchedule, fee_schedule_from_dict
from cashledger.domain.hold import HoldPolicy

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "CASHLEDGER_CONFIG"
DEFAULT_CONFIG_PATH = Path.home() / ".cashledger" / "config.yaml"


@dataclass(frozen=True)
class EngineConfig:
    fee_schedule: FeeSchedule = field(default_factory=FeeSchedule)
    hold_policy: HoldPolicy = field(default_factory=HoldPolicy)
    max_transaction_amount: Decimal = Decimal("25000")
    proposal_ttl_seconds: int = 300
    lock_timeout_seconds: float = 5.0
    fees_account_number: str = "FEES"


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a YAML file and return its contents as a dict.

    Raises:
        ConfigurationError: If the file is unreadable, not valid YAML, or not a mapping
    """
    try:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
    except OSError as e:
        raise ConfigurationError(f"Cannot read config file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigurationError(f"{path}: top level must be a mapping")
    return data


def _positive_int(value: Any, where: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ConfigurationError(f"{where}: must be a positive integer (got {value})")
    return value


def _positive_number(value: Any, where: str) -> Decimal:
    try:
        result = Decimal(str(value))
    except ArithmeticError as e:
        raise ConfigurationError(f"{where}: '{value}' is not a number") from e
    if not result.is_finite() or result <= 0:
        raise ConfigurationError(f"{where}: must be greater than zero (got {value})")
    return result


def parse_hold_policy(raw: Optional[Mapping[str, Any]]) -> HoldPolicy:
    """Build a HoldPolicy from the ``hold_settings`` section."""
    if raw is None:
        return HoldPolicy()
    if not isinstance(raw, Mapping):
        raise ConfigurationError("hold_settings: must be a mapping")
    defaults = HoldPolicy()
    return HoldPolicy(
        enabled=bool(raw.get("enabled", defaults.enabled)),
        bounce_threshold=_positive_int(
            raw.get("bounce_threshold", defaults.bounce_threshold), "hold_settings.bounce_threshold"
        ),
        period_days=_positive_int(raw.get("period_days", defaults.period_days), "hold_settings.period_days"),
    )


def config_from_dict(raw: Mapping[str, Any]) -> EngineConfig:
    """Build an EngineConfig from a parsed settings document.

    Raises:
        ConfigurationError: If any section is malformed
    """
    defaults = EngineConfig()
    limits = raw.get("limits") or {}
    if not isinstance(limits, Mapping):
        raise ConfigurationError("limits: must be a mapping")

    fees_account_number = str(raw.get("fees_account_number", defaults.fees_account_number)).strip()
    if not fees_account_number:
        raise ConfigurationError("fees_account_number: must not be empty")

    return EngineConfig(
        fee_schedule=fee_schedule_from_dict(raw.get("transaction_fees")),
        hold_policy=parse_hold_policy(raw.get("hold_settings")),
        max_transaction_amount=_positive_number(
            limits.get("max_transaction_amount", defaults.max_transaction_amount), "limits.max_transaction_amount"
        ),
        proposal_ttl_seconds=_positive_int(
            limits.get("proposal_ttl_seconds", defaults.proposal_ttl_seconds), "limits.proposal_ttl_seconds"
        ),
        lock_timeout_seconds=float(
            _positive_number(
                limits.get("lock_timeout_seconds", defaults.lock_timeout_seconds), "limits.lock_timeout_seconds"
            )
        ),
        fees_account_number=fees_account_number,
    )


def load_config(path: Optional[str] = None) -> EngineConfig:
    """Load engine configuration.

    Args:
        path: YAML file. If None, checks CASHLEDGER_CONFIG environment variable,
            then ~/.cashledger/config.yaml. A missing default file means defaults
            (all fees disabled).

    Returns:
        Immutable engine configuration

    Raises:
        ConfigurationError: If an explicitly named file is missing or any setting is malformed
    """
    if path is None:
        path = os.environ.get(CONFIG_ENV_VAR)

    if path is None:
        if not DEFAULT_CONFIG_PATH.exists():
            logger.debug("no config file at %s, using defaults", DEFAULT_CONFIG_PATH)
            return EngineConfig()
        config_path = DEFAULT_CONFIG_PATH
    else:
        config_path = Path(path).expanduser()
        if not config_path.exists():
            raise ConfigurationError(f"Config file {config_path} not found")

    config = config_from_dict(load_yaml_file(config_path))
    logger.info("config loaded path=%s fees_enabled=%s", config_path, config.fee_schedule.enabled)
    return config

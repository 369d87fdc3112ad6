"""
Loads the fee configuration from the database into an immutable FeeSettings.
"""
import logging
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session
from models.system import FeeSetting
from schemas.fees import FeeSettings
from services.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


def load_fee_settings(db: Session) -> FeeSettings:
    row = db.query(FeeSetting).order_by(FeeSetting.id).first()
    if row is None:
        logger.error("Fee settings are missing; run seed.py or PUT /api/v1/fees/settings")
        raise ConfigurationError("Fee settings have not been configured")

    try:
        return FeeSettings.model_validate(row)
    except PydanticValidationError as e:
        logger.error("Fee settings are invalid: %s", e)
        raise ConfigurationError(f"Fee settings are invalid: {e}") from e


def save_fee_settings(db: Session, values: dict) -> FeeSettings:
    """Validate the merged values first, then persist them"""
    row = db.query(FeeSetting).order_by(FeeSetting.id).first()
    current = {}
    if row is not None:
        current = {c.name: getattr(row, c.name) for c in FeeSetting.__table__.columns
                   if c.name not in ("id", "updated_at")}
    current.update(values)

    try:
        settings = FeeSettings.model_validate(current)
    except PydanticValidationError as e:
        raise ConfigurationError(f"Fee settings are invalid: {e}") from e

    if row is None:
        row = FeeSetting()
        db.add(row)
    for key, value in settings.model_dump(mode="json").items():
        setattr(row, key, value)
    db.commit()

    logger.info("Fee settings updated: %s", sorted(values))
    return settings

from .common import RuleViolation, ValidationResult  # noqa
from .request import RequestValidator  # noqa
from .rule_validator import RuleValidator  # noqa

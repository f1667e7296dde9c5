from .breakdown_builder import Breakdown, BreakdownBuilder, BreakdownKind, CheckStatus  # noqa

"""Known-entity labels and resolvers."""

from privacy_scanner.labels.models import Label, LabelType
from privacy_scanner.labels.resolver import LabelResolver, StaticLabelResolver

__all__ = ["Label", "LabelResolver", "LabelType", "StaticLabelResolver"]

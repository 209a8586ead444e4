"""Event filters and pause checks."""

from typing import Any, Optional

from ipam_operator.models.base import PAUSED_ANNOTATION, WATCH_FILTER_LABEL


def has_paused_annotation(obj: Any) -> bool:
    annotations = getattr(obj, "annotations", None) or {}
    return PAUSED_ANNOTATION in annotations


def is_paused(cluster: Any, obj: Any) -> bool:
    """True if the cluster is paused or either object carries the paused annotation."""
    if cluster is not None and (
        getattr(cluster, "paused", False) or has_paused_annotation(cluster)
    ):
        return True
    return has_paused_annotation(obj)


def has_watch_filter_label(obj: Any, watch_filter_value: Optional[str]) -> bool:
    if not watch_filter_value:
        return True
    labels = getattr(obj, "labels", None) or {}
    return labels.get(WATCH_FILTER_LABEL) == watch_filter_value


def resource_not_paused_and_has_filter_label(
    obj: Any, watch_filter_value: Optional[str]
) -> bool:
    """Watch predicate: skip paused objects and objects outside the filter."""
    return not has_paused_annotation(obj) and has_watch_filter_label(
        obj, watch_filter_value
    )

"""
SiteCMS Backend — ServicePage Merge Engine
============================================

What:  Applies one targeted mutation (a patch descriptor) to a ServicePage
       document, and zips uploaded category images into full replacements.
How:   resolve_patch() validates a descriptor into a plan without touching
       anything; apply_patch() performs at most one upload, then writes the
       plan into the document. Sequences are grown with ensure_length().
Who:   ServicePageService (PATCH, POST and PUT paths).
When:  Once per write request; nothing is kept between calls.

Patch descriptor:
    {type?, index?, field?, value?, file}
    - type:  "titleDescArray" | "categoryname" | "servicetitle" | "serviceImage"
             When absent, `field` names the target and no sub-field is addressed.
    - index: position inside a sequence target; missing positions are filled
             with empty elements up to and including it.
    - field: sub-field of the addressed element (title, description, image).

    Examples:
        {type: "categoryname", index: 3, field: "title", value: "X"}
        {type: "categoryname", index: 0, field: "image", file: <bytes>}
        {field: "titleDescArray", index: 1, value: {"title": "T"}}
        {field: "servicetitle", value: "Plumbing"}

Category image fallback (POST and PUT), per element i:
    uploaded URL i → payload http(s) URL → previously stored image i → ''
"""

import json
import logging
from dataclasses import dataclass, field as dataclass_field
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from sitecms.config import settings
from sitecms.exceptions import InvalidPatchError, ValidationError
from sitecms.models.entities import is_blank, normalize_objects
from sitecms.services.blob_base import BlobClient

logger = logging.getLogger(__name__)

TITLE_DESC_FIELDS = ("title", "description")
CATEGORY_FIELDS = ("image", "title", "description")

SEQUENCE_SHAPES: Dict[str, tuple] = {
    "titleDescArray": TITLE_DESC_FIELDS,
    "categoryname": CATEGORY_FIELDS,
}
SCALAR_FIELDS = frozenset({"servicetitle", "serviceImage"})
# Scalars a patch may not blank
REQUIRED_SCALARS = frozenset({"servicetitle"})


# ── Zero elements ─────────────────────────────────────────────────────────
def zero_title_desc() -> Dict[str, str]:
    return {"title": "", "description": ""}


def zero_category() -> Dict[str, str]:
    return {"image": "", "title": "", "description": ""}


ZERO_FACTORIES: Dict[str, Callable[[], Dict[str, str]]] = {
    "titleDescArray": zero_title_desc,
    "categoryname": zero_category,
}


def ensure_length(
    seq: Optional[Sequence[Any]],
    index: int,
    zero_factory: Callable[[], Any],
) -> List[Any]:
    """
    Return a copy of `seq` long enough that `seq[index]` exists.

    Every missing position up to and including `index` is filled with a
    fresh zero element; existing elements are kept as they are.
    """
    if index < 0:
        raise ValueError("index must be non-negative")
    grown = list(seq or [])
    while len(grown) <= index:
        grown.append(zero_factory())
    return grown


def is_absolute_url(value: Any) -> bool:
    return isinstance(value, str) and value.startswith(("http://", "https://"))


def normalize_title_desc(items: Sequence[Any], field_name: str = "titleDescArray"):
    return normalize_objects(items, TITLE_DESC_FIELDS, field_name)


def normalize_categories(items: Sequence[Any], field_name: str = "categoryname"):
    return normalize_objects(items, CATEGORY_FIELDS, field_name)


def merge_categories(
    items: Sequence[Mapping[str, Any]],
    uploaded_urls: Sequence[Optional[str]] = (),
    previous_images: Sequence[Optional[str]] = (),
) -> List[Dict[str, str]]:
    """
    Zip category payload items with freshly uploaded images.

    Args:
        items: Category objects from the request payload
        uploaded_urls: URLs of the uploaded category files, in upload order
        previous_images: Images stored on the document being replaced
                         (empty on create)

    Returns:
        One fully-shaped category per payload item. Uploads beyond the
        number of items are not referenced.
    """
    merged = []
    for i, item in enumerate(items):
        image = uploaded_urls[i] if i < len(uploaded_urls) else None
        if not image and is_absolute_url(item.get("image")):
            image = item["image"]
        if not image and i < len(previous_images):
            image = previous_images[i]
        merged.append(
            {
                "image": image or "",
                "title": "" if item.get("title") is None else str(item.get("title")),
                "description": (
                    "" if item.get("description") is None else str(item.get("description"))
                ),
            }
        )
    return merged


# ── Patch descriptors ─────────────────────────────────────────────────────
@dataclass
class PatchDescriptor:
    type: Optional[str] = None
    index: Any = None
    field: Optional[str] = None
    value: Any = None
    file_bytes: Optional[bytes] = dataclass_field(default=None, repr=False)
    file_name: Optional[str] = None


@dataclass
class PatchPlan:
    """A validated patch: where to write and what."""

    target: str
    index: Optional[int] = None
    updates: Dict[str, str] = dataclass_field(default_factory=dict)
    value: Any = None
    upload_image: bool = False


def _parse_index(raw: Any) -> Optional[int]:
    if is_blank(raw):
        return None
    if isinstance(raw, bool):
        raise InvalidPatchError(message="Patch index must be an integer.")
    if isinstance(raw, int):
        index = raw
    elif isinstance(raw, str) and raw.strip().lstrip("-").isdigit():
        index = int(raw.strip())
    else:
        raise InvalidPatchError(
            message="Patch index must be an integer.", context={"index": str(raw)}
        )
    if index < 0:
        raise InvalidPatchError(
            message="Patch index must not be negative.", context={"index": index}
        )
    if index >= settings.max_sequence_length:
        raise InvalidPatchError(
            message=f"Patch index must be below {settings.max_sequence_length}.",
            context={"index": index, "limit": settings.max_sequence_length},
        )
    return index


def _as_text(value: Any, target: str) -> str:
    if isinstance(value, (dict, list)):
        raise InvalidPatchError(
            message=f"Value for '{target}' must be a string.",
            context={"target": target},
        )
    return value if isinstance(value, str) else str(value)


def _decode(value: Any, expected: type, target: str) -> Any:
    """Accept `expected` directly or as a JSON-encoded string."""
    if isinstance(value, expected):
        return value
    if isinstance(value, str):
        try:
            decoded = json.loads(value)
        except ValueError:
            decoded = None
        if isinstance(decoded, expected):
            return decoded
    kind = "an object" if expected is dict else "an array"
    raise InvalidPatchError(
        message=f"Value for '{target}' must be {kind} (or its JSON encoding).",
        context={"target": target},
    )


def resolve_patch(patch: PatchDescriptor) -> PatchPlan:
    """
    Validate a descriptor without side effects.

    Raises:
        InvalidPatchError: unknown target or sub-field, index on a scalar
            field, bad index, missing or undecodable value.
    """
    has_type = not is_blank(patch.type)
    target = patch.type if has_type else patch.field
    sub_field = patch.field if has_type and not is_blank(patch.field) else None
    if is_blank(target):
        raise InvalidPatchError(message="Patch must name a 'type' or 'field'.")

    index = _parse_index(patch.index)
    has_value = patch.value is not None

    if target in SCALAR_FIELDS:
        if index is not None:
            raise InvalidPatchError(
                message=f"'{target}' is not a sequence; index is not allowed.",
                context={"target": target},
            )
        if sub_field is not None:
            raise InvalidPatchError(
                message=f"'{target}' has no sub-field '{sub_field}'.",
                context={"target": target, "field": sub_field},
            )
        if not has_value:
            raise InvalidPatchError(
                message=f"Patch for '{target}' is missing a value.",
                context={"target": target},
            )
        text = _as_text(patch.value, target)
        if target in REQUIRED_SCALARS and is_blank(text):
            raise InvalidPatchError(
                message=f"'{target}' is required and cannot be blank.",
                context={"target": target},
            )
        return PatchPlan(target=target, value=text)

    if target not in SEQUENCE_SHAPES:
        raise InvalidPatchError(
            message=f"Unknown patch target '{target}'.", context={"target": target}
        )
    shape = SEQUENCE_SHAPES[target]

    if index is None:
        if sub_field is not None:
            raise InvalidPatchError(
                message=f"Sub-field '{sub_field}' requires an index.",
                context={"target": target, "field": sub_field},
            )
        if not has_value:
            raise InvalidPatchError(
                message=f"Patch for '{target}' is missing a value.",
                context={"target": target},
            )
        items = _decode(patch.value, list, target)
        try:
            shaped = normalize_objects(items, shape, target)
        except ValidationError as e:
            raise InvalidPatchError(message=e.message, context={"target": target})
        return PatchPlan(target=target, value=shaped)

    if target == "categoryname" and patch.file_bytes and sub_field in (None, "image"):
        return PatchPlan(target=target, index=index, upload_image=True)

    if sub_field is not None:
        if sub_field not in shape:
            raise InvalidPatchError(
                message=f"'{target}' elements have no sub-field '{sub_field}'.",
                context={"target": target, "field": sub_field, "allowed": list(shape)},
            )
        if not has_value:
            raise InvalidPatchError(
                message=f"Patch for '{target}[{index}].{sub_field}' is missing a value.",
                context={"target": target, "field": sub_field},
            )
        return PatchPlan(
            target=target,
            index=index,
            updates={sub_field: _as_text(patch.value, sub_field)},
        )

    if not has_value:
        raise InvalidPatchError(
            message=f"Patch for '{target}[{index}]' is missing a value.",
            context={"target": target},
        )
    values = _decode(patch.value, dict, target)
    unknown = sorted(k for k in values if k not in shape)
    if unknown or not values:
        raise InvalidPatchError(
            message=f"'{target}' elements only accept: {', '.join(shape)}.",
            context={"target": target, "unknown": unknown},
        )
    return PatchPlan(
        target=target,
        index=index,
        updates={
            k: "" if v is None else _as_text(v, k) for k, v in values.items()
        },
    )


async def apply_patch(
    doc: Dict[str, Any],
    patch: PatchDescriptor,
    blob_client: BlobClient,
) -> Dict[str, Any]:
    """
    Apply one patch descriptor to `doc` in place and return it.

    The descriptor is validated completely before the (optional) upload, so
    a rejected patch leaves `doc` untouched.

    Raises:
        InvalidPatchError: see resolve_patch()
        BlobStorageError: the category image upload failed
    """
    plan = resolve_patch(patch)

    updates = plan.updates
    if plan.upload_image:
        uploaded = await blob_client.upload(patch.file_bytes, patch.file_name or "image")
        updates = {"image": uploaded.url}

    if plan.index is None:
        doc[plan.target] = plan.value
        logger.debug("Patched %s", plan.target)
        return doc

    seq = ensure_length(
        [dict(element) for element in doc.get(plan.target) or []],
        plan.index,
        ZERO_FACTORIES[plan.target],
    )
    seq[plan.index].update(updates)
    doc[plan.target] = seq
    logger.debug("Patched %s[%d] (%s)", plan.target, plan.index, ", ".join(updates))
    return doc

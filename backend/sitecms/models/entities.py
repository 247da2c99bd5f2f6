"""
SiteCMS Backend — Entity Definitions
======================================

What:  Field tables describing every flat resource (Box, Item, Testimonial, ...).
How:   Each EntityDefinition lists its fields (kind, required, bounds), an
       optional blob slot, whether it carries timestamps, and the paths it
       exposes. coerce() turns a raw JSON or form payload into the document
       fields to store.
Who:   resource_service (create/update) and routes.resources (router factory).
When:  Loaded once at import; definitions are immutable.

Field kinds:
    str      plain string (numbers from JSON bodies are stringified)
    int      integer with optional minimum/maximum
    list     list of strings, given as a list or a JSON-encoded string
    objects  list of objects with fixed sub-fields, missing keys become ''

Unknown payload keys are ignored. A value of None or '' counts as absent.
"""

import json
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from sitecms.exceptions import ValidationError

FIELD_KINDS = frozenset({"str", "int", "list", "objects"})


# ── JSON-encoded values ───────────────────────────────────────────────────
def decode_json_list(raw: Any, field_name: str) -> List[Any]:
    """
    Accept a list, or a string holding a JSON array.

    Raises:
        ValidationError: the value is neither.
    """
    if isinstance(raw, list):
        return raw
    if isinstance(raw, (str, bytes)):
        try:
            value = json.loads(raw)
        except ValueError:
            raise ValidationError(
                message=f"Field '{field_name}' must be a JSON-encoded array.",
                field=field_name,
            )
        if isinstance(value, list):
            return value
    raise ValidationError(
        message=f"Field '{field_name}' must be an array.",
        field=field_name,
    )


def normalize_objects(
    items: Sequence[Any], subfields: Sequence[str], field_name: str
) -> List[Dict[str, str]]:
    """Shape every element to exactly `subfields`, missing or null keys → ''."""
    shaped = []
    for position, item in enumerate(items):
        if not isinstance(item, Mapping):
            raise ValidationError(
                message=f"Element {position} of '{field_name}' must be an object.",
                field=field_name,
                context={"index": position},
            )
        shaped.append(
            {
                key: "" if item.get(key) is None else str(item.get(key))
                for key in subfields
            }
        )
    return shaped


def is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value.strip() == "")


# ── Table types ───────────────────────────────────────────────────────────
@dataclass(frozen=True)
class FieldSpec:
    name: str
    kind: str = "str"
    required: bool = False
    minimum: Optional[int] = None
    maximum: Optional[int] = None
    subfields: Tuple[str, ...] = ()

    def __post_init__(self):
        if self.kind not in FIELD_KINDS:
            raise ValueError(f"Unknown field kind '{self.kind}' for '{self.name}'")

    def coerce(self, raw: Any) -> Any:
        """Convert one supplied (non-blank) value to its stored form."""
        if self.kind == "str":
            return raw if isinstance(raw, str) else str(raw)

        if self.kind == "int":
            if isinstance(raw, bool):
                raise ValidationError(
                    message=f"Field '{self.name}' must be an integer.", field=self.name
                )
            try:
                number = int(str(raw).strip())
            except ValueError:
                raise ValidationError(
                    message=f"Field '{self.name}' must be an integer.", field=self.name
                )
            if (self.minimum is not None and number < self.minimum) or (
                self.maximum is not None and number > self.maximum
            ):
                raise ValidationError(
                    message=(
                        f"Field '{self.name}' must be between "
                        f"{self.minimum} and {self.maximum}."
                    ),
                    field=self.name,
                    context={"minimum": self.minimum, "maximum": self.maximum},
                )
            return number

        items = decode_json_list(raw, self.name)
        if self.kind == "list":
            return ["" if item is None else str(item) for item in items]
        return normalize_objects(items, self.subfields, self.name)


@dataclass(frozen=True)
class BlobSpec:
    """
    File slot of an entity.

    form_field:   multipart field the file arrives in
    target:       document field receiving the URL (a list when `many`)
    handle_field: document field receiving the host's file handle, if kept
    """

    form_field: str
    target: str
    required: bool = True
    many: bool = False
    folder: Optional[str] = None
    handle_field: Optional[str] = None


@dataclass(frozen=True)
class EntityDefinition:
    name: str
    collection: str
    prefix: str
    fields: Tuple[FieldSpec, ...] = ()
    blob: Optional[BlobSpec] = None
    timestamps: bool = False
    create_path: str = "/add"
    list_path: str = "/get"
    updatable: bool = True
    tag: str = ""

    @property
    def label(self) -> str:
        """Human-readable name used in messages, e.g. 'Carousel design'."""
        return self.tag or self.name

    @property
    def sort(self) -> Optional[List[Tuple[str, int]]]:
        # Timestamped resources list newest first, the rest in insertion order
        if self.timestamps:
            return [("createdAt", -1), ("_id", -1)]
        return None

    def coerce(self, payload: Mapping[str, Any], partial: bool = False) -> Dict[str, Any]:
        """
        Build the document fields from a raw payload.

        Args:
            payload: Parsed JSON body or form fields (files excluded)
            partial: Update mode; absent fields are skipped instead of
                     reported, but a required field may not be blanked

        Raises:
            ValidationError: missing required fields or a value of the wrong kind
        """
        missing = []
        document: Dict[str, Any] = {}
        for spec in self.fields:
            present = spec.name in payload
            raw = payload.get(spec.name)
            if is_blank(raw):
                if spec.required and (present or not partial):
                    missing.append(spec.name)
                continue
            document[spec.name] = spec.coerce(raw)

        if missing:
            raise ValidationError(
                message=f"Missing required fields: {', '.join(missing)}",
                context={"fields": missing},
            )
        return document


# ── Definitions ───────────────────────────────────────────────────────────
BOX = EntityDefinition(
    name="Box",
    collection="boxes",
    prefix="/api/box",
    fields=(
        FieldSpec("boxNo", required=True),
        FieldSpec("count", required=True),
        FieldSpec("title", required=True),
        FieldSpec("description", required=True),
    ),
)

BUSINESS_INFO = EntityDefinition(
    name="BusinessInfo",
    tag="Business info",
    collection="businessinfos",
    prefix="/api/business",
    create_path="/create",
    fields=tuple(
        FieldSpec(name)
        for name in (
            "firstName",
            "middleName",
            "lastName",
            "phoneNumber",
            "city",
            "stateProvince",
            "pincodeZipcode",
            "businessModel",
            "remark",
        )
    ),
)

ITEM = EntityDefinition(
    name="Item",
    collection="items",
    prefix="/api/item",
    fields=(
        FieldSpec("heading", required=True),
        FieldSpec("features", kind="list", required=True),
    ),
    blob=BlobSpec(form_field="image", target="image"),
)

TESTIMONIAL = EntityDefinition(
    name="Testimonial",
    collection="testimonials",
    prefix="/api/testimonial",
    create_path="/upload",
    timestamps=True,
    fields=(
        FieldSpec("description", required=True),
        FieldSpec("name", required=True),
        FieldSpec("location", required=True),
        FieldSpec("rating", kind="int", required=True, minimum=1, maximum=5),
    ),
    blob=BlobSpec(form_field="image", target="image"),
)

VIDEO_UPLOAD = EntityDefinition(
    name="VideoUpload",
    tag="Video",
    collection="videouploads",
    prefix="/api/video",
    create_path="/upload",
    timestamps=True,
    updatable=False,
    blob=BlobSpec(
        form_field="video", target="video", folder="/videos", handle_field="fileId"
    ),
)

CAROUSEL_DESIGN = EntityDefinition(
    name="CarouselDesign",
    tag="Carousel design",
    collection="designs",
    prefix="/api/images",
    create_path="/insert",
    timestamps=True,
    fields=(FieldSpec("category", required=True),),
    blob=BlobSpec(form_field="images", target="images", many=True),
)

SERVICE = EntityDefinition(
    name="Service",
    collection="services",
    prefix="/api/service",
    create_path="/submit-service",
    list_path="/get-services",
    timestamps=True,
    fields=tuple(
        FieldSpec(name)
        for name in (
            "firstName",
            "middleName",
            "lastName",
            "phoneNumber",
            "email",
            "address",
            "module",
            "message",
        )
    ),
    blob=BlobSpec(form_field="file", target="fileUrl", required=False),
)

CONTENT_SECTION = EntityDefinition(
    name="ContentSection",
    tag="Content section",
    collection="contentsections",
    prefix="/api/content-section",
    create_path="/upload",
    timestamps=True,
    fields=(
        FieldSpec("Heading"),
        FieldSpec("Subheading"),
        FieldSpec(
            "content",
            kind="objects",
            required=True,
            subfields=("title", "description"),
        ),
    ),
    blob=BlobSpec(form_field="image", target="image", folder="/contentSection"),
)

ENTITIES: Tuple[EntityDefinition, ...] = (
    BOX,
    BUSINESS_INFO,
    ITEM,
    TESTIMONIAL,
    VIDEO_UPLOAD,
    CAROUSEL_DESIGN,
    SERVICE,
    CONTENT_SECTION,
)

"""core primitives: the form graph engine."""

from .models import (
    FormGraph,
    Step,
    StepType,
    TextStep,
    ChoiceStep,
    QuantityStep,
    ConclusionStep,
    Choice,
    QuantityChoice,
    InfoPopup,
    new_step,
    generate_id,
    get_forms_dir,
    list_saved_forms,
)
from .traversal import (
    visit,
    count_descendants,
    reachable_ids,
    orphan_ids,
    walk_tree,
    build_path,
    TreeEntry,
    PathNode,
)
from .chains import get_linear_chain, draggable_ids, list_chains
from .reorder import reorder_chain, move_step
from .mutations import (
    create_first_step,
    add_step,
    update_step,
    delete_step,
    add_choice,
    update_choice,
    delete_choice,
    add_quantity_choice,
    update_quantity_choice,
    delete_quantity_choice,
    append_image,
)
from .snapshots import SnapshotManager
from .schema import SchemaError, parse_graph, validate_graph
from .uploads import (
    UploadError,
    UploadProtocol,
    UploadRequest,
    UploadTicket,
    HttpUploader,
    MockUploader,
    upload_image,
)
from .render import render_tree, export_outline, export_mermaid

__all__ = [
    # models
    "FormGraph",
    "Step",
    "StepType",
    "TextStep",
    "ChoiceStep",
    "QuantityStep",
    "ConclusionStep",
    "Choice",
    "QuantityChoice",
    "InfoPopup",
    "new_step",
    "generate_id",
    "get_forms_dir",
    "list_saved_forms",
    # traversal
    "visit",
    "count_descendants",
    "reachable_ids",
    "orphan_ids",
    "walk_tree",
    "build_path",
    "TreeEntry",
    "PathNode",
    # chains / reorder
    "get_linear_chain",
    "draggable_ids",
    "list_chains",
    "reorder_chain",
    "move_step",
    # mutations
    "create_first_step",
    "add_step",
    "update_step",
    "delete_step",
    "add_choice",
    "update_choice",
    "delete_choice",
    "add_quantity_choice",
    "update_quantity_choice",
    "delete_quantity_choice",
    "append_image",
    # snapshots
    "SnapshotManager",
    # schema
    "SchemaError",
    "parse_graph",
    "validate_graph",
    # uploads
    "UploadError",
    "UploadProtocol",
    "UploadRequest",
    "UploadTicket",
    "HttpUploader",
    "MockUploader",
    "upload_image",
    # render
    "render_tree",
    "export_outline",
    "export_mermaid",
]

"""
Class label tables and label resolution.
"""

from __future__ import annotations

from typing import Mapping, Optional, Sequence, Union

COCO_CLASSES = (
    "person", "bicycle", "car", "motorcycle", "airplane", "bus", "train", "truck", "boat",
    "traffic light", "fire hydrant", "stop sign", "parking meter", "bench", "bird", "cat",
    "dog", "horse", "sheep", "cow", "elephant", "bear", "zebra", "giraffe", "backpack",
    "umbrella", "handbag", "tie", "suitcase", "frisbee", "skis", "snowboard", "sports ball",
    "kite", "baseball bat", "baseball glove", "skateboard", "surfboard", "tennis racket",
    "bottle", "wine glass", "cup", "fork", "knife", "spoon", "bowl", "banana", "apple",
    "sandwich", "orange", "broccoli", "carrot", "hot dog", "pizza", "donut", "cake",
    "chair", "couch", "potted plant", "bed", "dining table", "toilet", "tv", "laptop",
    "mouse", "remote", "keyboard", "cell phone", "microwave", "oven", "toaster", "sink",
    "refrigerator", "book", "clock", "vase", "scissors", "teddy bear", "hair drier", "toothbrush",
)

LabelOverride = Mapping[Union[int, str], str]


def resolve_label(
    class_id: int,
    class_names: Sequence[str] = COCO_CLASSES,
    id_to_label: Optional[LabelOverride] = None,
) -> str:
    """
    Resolve a class id to a display label.

    Order: caller override (int or numeric-string keys, as model configs
    ship them), then the static table, then "Class {id}". Empty strings
    fall through to the next source.
    """
    if id_to_label:
        label = id_to_label.get(class_id) or id_to_label.get(str(class_id))
        if label:
            return label
    if 0 <= class_id < len(class_names) and class_names[class_id]:
        return class_names[class_id]
    return f"Class {class_id}"

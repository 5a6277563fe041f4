"""Design token 資料結構（探勘結果，尚未寫入 store）."""

from dataclasses import asdict, dataclass, field
from typing import Optional

TYPOGRAPHY_ELEMENTS = ("h1", "h2", "h3", "h4", "h5", "h6", "p")


@dataclass
class SketchDocument:
    """解壓後的 document.json 內容與來源路徑."""
    path: str
    data: dict


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


def _wire(obj) -> dict:
    """dataclass → JSON 欄位（projectId、ogName、minSize …）."""
    return {_camel(k): v for k, v in asdict(obj).items()}


def as_documents(documents) -> list:
    """接受 SketchDocument 或純 dict（測試 / 預覽用）."""
    result = []
    for i, doc in enumerate(documents):
        if isinstance(doc, SketchDocument):
            result.append(doc)
        else:
            result.append(SketchDocument(path=f"<document {i}>", data=doc))
    return result


@dataclass
class ColorToken:
    project_id: int
    name: str
    og_name: str
    value: str
    checked: bool = False
    double_name: bool = False

    def to_dict(self) -> dict:
        return _wire(self)


@dataclass
class TypoEntry:
    """divide_typo 的結果：單一 text style 的分類與屬性."""
    element: str
    style_name: str
    format: Optional[str] = None
    has_italic_variant: bool = False
    variables: list = field(default_factory=list)
    size: Optional[float] = None
    font_family: Optional[str] = None
    color: Optional[str] = None
    kerning: Optional[float] = None
    line_height: Optional[float] = None


@dataclass
class TypographyToken:
    project_id: int
    key: str
    colors: list = field(default_factory=list)
    min_size: Optional[float] = None
    base_size: Optional[float] = None
    has_italic: bool = False
    weight: list = field(default_factory=list)
    family: Optional[str] = None
    checked: bool = False

    def to_dict(self) -> dict:
        return _wire(self)

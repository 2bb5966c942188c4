import json
from enum import Enum
from pathlib import PurePath

SIMPLE_TYPES = (int, str, float, bool, type(None))


class CompactReportEncoder(json.JSONEncoder):
    """JSON encoder that keeps scalar lists on one line and indents the rest.

    Report entries carry small artifact lists and long output strings;
    keeping the lists inline makes the machine-readable report diffable.
    """

    def __init__(self, *args, indent_width: int = 2, wrap: int = 8, **kwargs):
        super().__init__(*args, **kwargs)
        self.indent_width = indent_width
        self.wrap = wrap

    def default(self, obj):
        if isinstance(obj, Enum):
            return obj.value
        if isinstance(obj, PurePath):
            return str(obj)
        return super().default(obj)

    def encode(self, obj):
        return self._encode_value(obj, 0)

    def _scalar(self, obj) -> str:
        if not isinstance(obj, SIMPLE_TYPES):
            obj = self.default(obj)
        return json.dumps(obj, ensure_ascii=self.ensure_ascii)

    def _encode_value(self, obj, level: int) -> str:
        if isinstance(obj, dict):
            return self._encode_dict(obj, level)
        if isinstance(obj, (list, tuple)):
            return self._encode_list(list(obj), level)
        return self._scalar(obj)

    def _encode_dict(self, obj: dict, level: int) -> str:
        if not obj:
            return '{}'
        pad = ' ' * (self.indent_width * (level + 1))
        lines = [
            f'{pad}{json.dumps(str(key))}: {self._encode_value(value, level + 1)}'
            for key, value in obj.items()
        ]
        return '{\n' + ',\n'.join(lines) + '\n' + ' ' * (self.indent_width * level) + '}'

    def _encode_list(self, items: list, level: int) -> str:
        if not items:
            return '[]'
        pad = ' ' * (self.indent_width * (level + 1))
        closing = '\n' + ' ' * (self.indent_width * level) + ']'

        if all(isinstance(item, SIMPLE_TYPES) or isinstance(item, (Enum, PurePath)) for item in items):
            encoded = [self._scalar(item) for item in items]
            if len(encoded) <= self.wrap:
                return '[' + ', '.join(encoded) + ']'
            rows = [
                pad + ', '.join(encoded[i:i + self.wrap])
                for i in range(0, len(encoded), self.wrap)
            ]
            return '[\n' + ',\n'.join(rows) + closing

        lines = [pad + self._encode_value(item, level + 1) for item in items]
        return '[\n' + ',\n'.join(lines) + closing

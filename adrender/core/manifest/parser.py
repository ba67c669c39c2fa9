"""
Manifest Parser
===============

Converts manifest.js source text into a Manifest tree.

A manifest is a script statement that assigns an object literal to a
well-known variable (``window.manifest = {...};``). The literal is read by a
small tokenizer and recursive-descent parser that accepts the permissive
object-literal grammar hand-authored templates use: unquoted keys, single,
double and backtick quotes, comments, trailing commas and every numeric
literal form. The script is never evaluated.
"""

from typing import Any, Dict, List, NamedTuple, Optional, Tuple
import math
import re

from cerberus import Validator  # type: ignore[import-untyped]

from adrender.config.logging import get_logger
from adrender.config.settings import get_settings
from .model import Manifest

logger = get_logger(__name__)


class ParseError(Exception):
    """Raised when manifest source cannot be parsed. Never retried."""

    def __init__(
        self,
        message: str,
        offset: Optional[int] = None,
        line: Optional[int] = None,
        column: Optional[int] = None,
        token: Optional[str] = None,
    ):
        self.offset = offset
        self.line = line
        self.column = column
        self.token = token
        location = f" at line {line}, column {column} (offset {offset})" if line is not None else ""
        super().__init__(f"{message}{location}")


class ManifestValidationError(ParseError):
    """Raised when a syntactically valid manifest has the wrong structure."""

    def __init__(self, errors: List[str]):
        self.errors = errors
        super().__init__("Invalid manifest structure: " + "; ".join(errors))


ASSIGNMENT_PATTERN = re.compile(
    r"(?:\b(?:var|let|const)\s+)?"
    r"((?:[A-Za-z_$][\w$]*\s*\.\s*)*[A-Za-z_$][\w$]*)"
    r"\s*=(?![=>])\s*(?=\{)"
)

NUMBER_PATTERN = re.compile(
    r"0[xX][0-9a-fA-F](?:_?[0-9a-fA-F])*"
    r"|0[oO][0-7](?:_?[0-7])*"
    r"|0[bB][01](?:_?[01])*"
    r"|(?:\d(?:_?\d)*(?:\.(?:\d(?:_?\d)*)?)?|\.\d(?:_?\d)*)(?:[eE][+-]?\d+)?"
)

IDENTIFIER_PATTERN = re.compile(r"(?:[^\W\d]|\$)[\w$\u200c\u200d]*")

PUNCTUATORS = frozenset("{}[]:,;+-()")

LINE_TERMINATORS = "\n\r\u2028\u2029"

SIMPLE_ESCAPES = {
    "n": "\n",
    "r": "\r",
    "t": "\t",
    "b": "\b",
    "f": "\f",
    "v": "\v",
}

KEYWORD_VALUES: Dict[str, Any] = {
    "true": True,
    "false": False,
    "null": None,
    "undefined": None,
    "NaN": math.nan,
    "Infinity": math.inf,
}


class Token(NamedTuple):
    kind: str  # "punct", "string", "number", "ident", "eof"
    value: Any
    offset: int
    text: str


class ManifestTokenizer:
    """Lexes an object literal into tokens, skipping whitespace and comments."""

    def __init__(self, source: str, offset: int = 0):
        self.source = source
        self.pos = offset
        self._peeked: Optional[Token] = None

    def error(self, message: str, offset: int, token: Optional[str] = None) -> ParseError:
        line = self.source.count("\n", 0, offset) + 1
        column = offset - (self.source.rfind("\n", 0, offset) + 1) + 1
        return ParseError(message, offset=offset, line=line, column=column, token=token)

    def peek(self) -> Token:
        if self._peeked is None:
            self._peeked = self._lex()
        return self._peeked

    def next(self) -> Token:
        token = self.peek()
        self._peeked = None
        return token

    def _skip_trivia(self) -> None:
        source = self.source
        length = len(source)
        while self.pos < length:
            char = source[self.pos]
            if char.isspace() or char == "\ufeff":
                self.pos += 1
            elif source.startswith("//", self.pos):
                while self.pos < length and source[self.pos] not in LINE_TERMINATORS:
                    self.pos += 1
            elif source.startswith("/*", self.pos):
                end = source.find("*/", self.pos + 2)
                if end == -1:
                    raise self.error("Unterminated block comment", self.pos, "/*")
                self.pos = end + 2
            else:
                break

    def _lex(self) -> Token:
        self._skip_trivia()
        start = self.pos
        if start >= len(self.source):
            return Token("eof", None, start, "")

        char = self.source[start]
        if char in "'\"`":
            value = self._lex_string(char)
            return Token("string", value, start, self.source[start : self.pos])

        if char.isdigit() or (char == "." and self.source[start + 1 : start + 2].isdigit()):
            match = NUMBER_PATTERN.match(self.source, start)
            if not match:
                raise self.error("Malformed number", start, char)
            self.pos = match.end()
            trailing = IDENTIFIER_PATTERN.match(self.source, self.pos)
            if trailing:
                raise self.error(
                    "Identifier directly after number", self.pos, trailing.group(0)
                )
            return Token("number", _number_value(match.group(0)), start, match.group(0))

        if char in PUNCTUATORS:
            self.pos += 1
            return Token("punct", char, start, char)

        match = IDENTIFIER_PATTERN.match(self.source, start)
        if match:
            self.pos = match.end()
            return Token("ident", match.group(0), start, match.group(0))

        raise self.error(f"Unexpected character {char!r}", start, char)

    def _lex_string(self, quote: str) -> str:
        source = self.source
        start = self.pos
        self.pos += 1
        parts: List[str] = []
        while True:
            if self.pos >= len(source):
                raise self.error("Unterminated string literal", start, quote)
            char = source[self.pos]
            if char == quote:
                self.pos += 1
                break
            if char == "\\":
                parts.append(self._lex_escape())
                continue
            if quote == "`" and source.startswith("${", self.pos):
                raise self.error("Template literal interpolation is not supported", self.pos, "${")
            if char in "\n\r" and quote != "`":
                raise self.error("Unescaped line break in string literal", self.pos, quote)
            parts.append(char)
            self.pos += 1
        # Rejoin UTF-16 surrogate pairs written as two \u escapes.
        return "".join(parts).encode("utf-16-le", "surrogatepass").decode("utf-16-le", "surrogatepass")

    def _lex_escape(self) -> str:
        source = self.source
        escape_start = self.pos
        self.pos += 1
        if self.pos >= len(source):
            raise self.error("Unterminated escape sequence", escape_start, "\\")
        char = source[self.pos]
        self.pos += 1

        if char in SIMPLE_ESCAPES:
            return SIMPLE_ESCAPES[char]
        if char == "0" and not source[self.pos : self.pos + 1].isdigit():
            return "\0"
        if char == "x":
            digits = source[self.pos : self.pos + 2]
            if not re.fullmatch(r"[0-9a-fA-F]{2}", digits):
                raise self.error("Invalid \\x escape", escape_start, "\\x" + digits)
            self.pos += 2
            return chr(int(digits, 16))
        if char == "u":
            if source.startswith("{", self.pos):
                end = source.find("}", self.pos)
                digits = source[self.pos + 1 : end] if end != -1 else ""
                if not re.fullmatch(r"[0-9a-fA-F]{1,6}", digits) or int(digits, 16) > 0x10FFFF:
                    raise self.error("Invalid \\u{} escape", escape_start, "\\u{" + digits)
                self.pos = end + 1
                return chr(int(digits, 16))
            digits = source[self.pos : self.pos + 4]
            if not re.fullmatch(r"[0-9a-fA-F]{4}", digits):
                raise self.error("Invalid \\u escape", escape_start, "\\u" + digits)
            self.pos += 4
            return chr(int(digits, 16))
        if char == "\r":
            if source.startswith("\n", self.pos):
                self.pos += 1
            return ""
        if char in "\n\u2028\u2029":
            return ""
        return char


def _number_value(text: str) -> Any:
    """Integers stay int; anything with a fraction or exponent becomes float."""
    cleaned = text.replace("_", "")
    prefix = cleaned[:2].lower()
    if prefix == "0x":
        return int(cleaned, 16)
    if prefix == "0o":
        return int(cleaned[2:], 8)
    if prefix == "0b":
        return int(cleaned[2:], 2)
    if any(c in cleaned for c in ".eE"):
        return float(cleaned)
    return int(cleaned)


def _number_key(value: Any) -> str:
    """Property name a numeric key stands for."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


class ObjectLiteralParser:
    """Recursive-descent parser over ManifestTokenizer tokens."""

    def __init__(self, source: str, offset: int = 0):
        self.tokens = ManifestTokenizer(source, offset)

    def _unexpected(self, token: Token, expected: str) -> ParseError:
        shown = token.text or "end of input"
        return self.tokens.error(f"Expected {expected} but found {shown!r}", token.offset, shown)

    def _expect(self, punct: str) -> Token:
        token = self.tokens.next()
        if token.kind != "punct" or token.value != punct:
            raise self._unexpected(token, repr(punct))
        return token

    def parse_literal(self) -> Tuple[Dict[str, Any], int]:
        """Parse one object literal; returns it and the offset just past it."""
        if self.tokens.peek().kind != "punct" or self.tokens.peek().value != "{":
            raise self._unexpected(self.tokens.peek(), "'{'")
        value = self.parse_value()
        end = self.tokens.pos
        token = self.tokens.peek()
        if token.kind == "punct" and token.value == ";":
            end = token.offset + 1
        return value, end

    def parse_value(self) -> Any:
        token = self.tokens.next()

        if token.kind == "punct":
            if token.value == "{":
                return self._parse_object(token)
            if token.value == "[":
                return self._parse_array(token)
            if token.value in "+-":
                return self._parse_signed(token)
            if token.value == "(":
                value = self.parse_value()
                self._expect(")")
                return value
            raise self._unexpected(token, "a value")

        if token.kind in ("string", "number"):
            return token.value

        if token.kind == "ident":
            if token.value in KEYWORD_VALUES:
                return KEYWORD_VALUES[token.value]
            raise self.tokens.error(
                f"Cannot evaluate identifier {token.value!r}; only literal values are allowed",
                token.offset,
                token.value,
            )

        raise self._unexpected(token, "a value")

    def _parse_signed(self, sign: Token) -> Any:
        token = self.tokens.next()
        if token.kind == "number":
            value = token.value
        elif token.kind == "ident" and token.value in ("Infinity", "NaN"):
            value = KEYWORD_VALUES[token.value]
        else:
            raise self._unexpected(token, "a number after sign")
        return -value if sign.value == "-" else value

    def _parse_object(self, opening: Token) -> Dict[str, Any]:
        result: Dict[str, Any] = {}
        while True:
            token = self.tokens.next()
            if token.kind == "punct" and token.value == "}":
                return result
            if token.kind == "eof":
                raise self.tokens.error("Unbalanced object literal: missing '}'", opening.offset, "{")

            if token.kind in ("ident", "string"):
                key = token.value
            elif token.kind == "number":
                key = _number_key(token.value)
            else:
                raise self._unexpected(token, "a property name")

            self._expect(":")
            result[key] = self.parse_value()

            separator = self.tokens.next()
            if separator.kind == "punct" and separator.value == "}":
                return result
            if separator.kind == "eof":
                raise self.tokens.error("Unbalanced object literal: missing '}'", opening.offset, "{")
            if separator.kind != "punct" or separator.value != ",":
                raise self._unexpected(separator, "',' or '}'")

    def _parse_array(self, opening: Token) -> List[Any]:
        result: List[Any] = []
        while True:
            token = self.tokens.peek()
            if token.kind == "punct" and token.value == "]":
                self.tokens.next()
                return result
            if token.kind == "eof":
                raise self.tokens.error("Unbalanced array literal: missing ']'", opening.offset, "[")
            if token.kind == "punct" and token.value == ",":
                # Elision: [1,,2]
                self.tokens.next()
                result.append(None)
                continue

            result.append(self.parse_value())

            separator = self.tokens.next()
            if separator.kind == "punct" and separator.value == "]":
                return result
            if separator.kind == "eof":
                raise self.tokens.error("Unbalanced array literal: missing ']'", opening.offset, "[")
            if separator.kind != "punct" or separator.value != ",":
                raise self._unexpected(separator, "',' or ']'")


def _variable_matches(found: str, wanted: str) -> bool:
    found = re.sub(r"\s+", "", found)
    if found == wanted:
        return True
    wanted_name = wanted.rsplit(".", 1)[-1]
    return found == wanted_name or found.endswith("." + wanted_name)


def locate_assignment(source: str, variable: str) -> Tuple[str, int]:
    """
    Find the object-literal assignment to the manifest variable.

    Returns:
        Tuple of (assigned variable name, offset of the opening brace)

    Raises:
        ParseError: If no such assignment exists
    """
    for match in ASSIGNMENT_PATTERN.finditer(source):
        if _variable_matches(match.group(1), variable):
            return re.sub(r"\s+", "", match.group(1)), match.end()
    raise ParseError(
        f"Could not find an object literal assigned to {variable!r}",
        offset=0,
        line=1,
        column=1,
        token=source[:20] or None,
    )


class ManifestValidator:
    """Structural validation of parsed manifests using Cerberus schemas."""

    def __init__(self) -> None:
        self.logger: Any = logger.bind(component="manifest_validator")
        self._setup_schemas()

    def _setup_schemas(self) -> None:
        """Setup validation schemas."""
        number = {"type": "number"}

        self.shot_schema = {
            "index": {"type": "integer"},
            "pos": {
                "type": "dict",
                "allow_unknown": True,
                "schema": {"x": number, "y": number},
            },
            "size": {
                "type": "dict",
                "allow_unknown": True,
                "schema": {"w": number, "h": number, "initW": number, "initH": number},
            },
        }

        self.layer_schema = {
            "name": {"type": "string", "required": True},
            "guid": {"type": ["string", "integer"], "nullable": True},
            "fileType": {"type": "string", "nullable": True},
            "isDynamic": {"type": "boolean"},
            "isGroup": {"type": "boolean"},
            "shots": {
                "type": "list",
                "schema": {"type": "dict", "allow_unknown": True, "schema": self.shot_schema},
            },
        }

        self.document_schema: Dict[str, Any] = {
            "layers": {
                "type": "list",
                "schema": {"type": "dict", "allow_unknown": True, "schema": self.layer_schema},
            },
            "sizes": {
                "type": "list",
                "schema": {
                    "type": "dict",
                    "allow_unknown": True,
                    "schema": {
                        "width": {"type": "integer", "required": True, "min": 1},
                        "height": {"type": "integer", "required": True, "min": 1},
                    },
                },
            },
            "settings": {
                "type": "dict",
                "allow_unknown": True,
                "schema": {
                    "width": number,
                    "height": number,
                    "dynamicValues": {"type": "list"},
                },
            },
        }

    def validate(self, root: Dict[str, Any]) -> Tuple[bool, List[str], List[str]]:
        """
        Validate manifest structure.

        Args:
            root: Parsed manifest object

        Returns:
            Tuple of (is_valid, errors, warnings)
        """
        validator = Validator(self.document_schema)  # type: ignore[misc]
        validator.allow_unknown = True  # type: ignore[attr-defined]

        is_valid = validator.validate(root)  # type: ignore[misc]
        errors: List[str] = []
        if not is_valid:
            errors.extend(self._format_validation_errors(validator.errors))  # type: ignore[attr-defined]

        warnings: List[str] = []
        if "layers" not in root:
            warnings.append("Manifest declares no layers")
        if "sizes" not in root and not (
            isinstance(root.get("settings"), dict)
            and root["settings"].get("width")
            and root["settings"].get("height")
        ):
            warnings.append("Manifest declares no sizes")
        if is_valid:
            for layer in root.get("layers", []):
                if not layer.get("shots"):
                    warnings.append(f"Layer '{layer.get('name')}' has no shots")

        return bool(is_valid), errors, warnings

    def _format_validation_errors(self, errors: Any, path: str = "") -> List[str]:
        """Format Cerberus validation errors into readable messages."""
        formatted: List[str] = []
        for field, error_info in errors.items():
            current_path = f"{path}.{field}" if path else str(field)
            for error in error_info if isinstance(error_info, list) else [error_info]:
                if isinstance(error, dict):
                    formatted.extend(self._format_validation_errors(error, current_path))
                else:
                    formatted.append(f"{current_path}: {error}")
        return formatted


def parse_manifest(
    source: str, variable: Optional[str] = None, validate: bool = True
) -> Manifest:
    """
    Parse manifest.js source text into a Manifest.

    Args:
        source: Manifest source text
        variable: Variable the manifest is assigned to (defaults to settings)
        validate: Run structural validation after parsing

    Returns:
        Parsed Manifest

    Raises:
        ParseError: If no assignment is found or the literal is malformed
        ManifestValidationError: If the parsed tree has the wrong structure
    """
    if not source or not source.strip():
        raise ParseError("Empty manifest source", offset=0, line=1, column=1)

    wanted = variable or get_settings().manifest_variable
    found, offset = locate_assignment(source, wanted)
    root, _ = ObjectLiteralParser(source, offset).parse_literal()

    if validate:
        is_valid, errors, warnings = ManifestValidator().validate(root)
        for warning in warnings:
            logger.warning("Manifest structure warning", warning=warning)
        if not is_valid:
            logger.error("Manifest validation failed", errors=errors)
            raise ManifestValidationError(errors)

    manifest = Manifest(root, variable=found)
    logger.debug("Parsed manifest", variable=found, layer_count=len(manifest.layers))
    return manifest

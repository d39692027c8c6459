"""Default text-grammar parser for scene command text.

Understands the handful of commands that shape a scene graph:

    createNode <type> -n <name> [-p <parent>] [-s]
    setAttr [flags] <plug> [values...] [-type <typeName>]
    connectAttr [-f] <source> <destination>
    parent [flags] <child> [<parent>]
    rename [<old>] <new>

Every other statement is kept verbatim as a raw statement.
"""

import logging
import shlex
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

from scenedig.models import ConnectionRecord, Provenance, RawStatement, SceneGraph

if TYPE_CHECKING:
    from scenedig.config import RecoveryOptions

logger = logging.getLogger(__name__)

# setAttr flags that take one argument
SETATTR_VALUE_FLAGS = frozenset({
    "-k", "-keyable", "-l", "-lock", "-cb", "-channelBox",
    "-ca", "-caching", "-cl", "-clamp", "-s", "-size",
})

# parent flags that take no argument
PARENT_SWITCHES = frozenset({
    "-s", "-shape", "-r", "-relative", "-a", "-absolute",
    "-w", "-world", "-nc", "-noConnections", "-add", "-rm", "-removeObject",
})


@dataclass
class Statement:
    """One ';'-terminated statement with its 1-based line span."""

    text: str
    line_start: int
    line_end: int


def split_statements(text: str) -> list[Statement]:
    """Split text at ';' outside double quotes.

    A trailing fragment without ';' is kept as a final statement.
    """
    statements = []
    current: list[str] = []
    line = 1
    start_line = 1
    in_quotes = False
    escaped = False

    for ch in text:
        if not current and ch.isspace():
            if ch == "\n":
                line += 1
            continue
        if not current:
            start_line = line

        if ch == "\n":
            line += 1

        if escaped:
            escaped = False
        elif ch == "\\" and in_quotes:
            escaped = True
        elif ch == '"':
            in_quotes = not in_quotes
        elif ch == ";" and not in_quotes:
            body = "".join(current).strip()
            if body:
                statements.append(Statement(body, start_line, line))
            current = []
            continue
        current.append(ch)

    body = "".join(current).strip()
    if body:
        statements.append(Statement(body, start_line, line))
    return statements


def tokenize(statement: str) -> list[str]:
    """Split a statement into tokens, unquoting double-quoted strings.

    Falls back to whitespace splitting when quotes are unbalanced.
    """
    lexer = shlex.shlex(statement, posix=True)
    lexer.whitespace_split = True
    lexer.commenters = ""
    lexer.quotes = '"'
    lexer.escapedquotes = '"'
    try:
        return list(lexer)
    except ValueError:
        return [t.strip('"') for t in statement.split()]


def is_flag(token: str) -> bool:
    """'-n' is a flag, '-1.5' is a value."""
    return len(token) > 1 and token[0] == "-" and not (token[1].isdigit() or token[1] == ".")


class CommandTextParser:
    """Parse command text into a SceneGraph with TEXT_COMMANDS provenance."""

    provenance = Provenance.TEXT_COMMANDS

    def parse_text(self, label: str, text: str, options: "RecoveryOptions") -> SceneGraph:
        """Parse command text into a new scene.

        Args:
            label: Name recorded as the scene's source path
            text: Command text, ';'-terminated statements
            options: Recovery options (raw statement retention)

        Returns:
            A scene holding the created nodes, attributes and connections
        """
        scene = SceneGraph()
        scene.set_raw_text(label, text)
        current: Optional[str] = None

        for statement in split_statements(text):
            tokens = tokenize(statement.text)
            if not tokens:
                continue

            if options.keep_raw_statements and len(scene.raw_statements) < options.max_raw_statements:
                scene.raw_statements.append(RawStatement(
                    command=tokens[0],
                    text=statement.text,
                    tokens=tokens,
                    line_start=statement.line_start,
                    line_end=statement.line_end,
                ))

            command = tokens[0]
            where = f"lines {statement.line_start}-{statement.line_end}"
            if command == "createNode":
                current = self._create_node(scene, tokens, where) or current
            elif command == "setAttr":
                current = self._set_attr(scene, tokens, current) or current
            elif command == "connectAttr":
                self._connect_attr(scene, tokens, where)
            elif command == "parent":
                self._parent(scene, tokens, where)
            elif command == "rename":
                current = self._rename(scene, tokens, current, where) or current

        logger.debug(f"Parsed {label}: {len(scene.nodes)} nodes, {len(scene.connections)} connections")
        return scene

    def _create_node(self, scene: SceneGraph, tokens: list[str], where: str) -> Optional[str]:
        if len(tokens) < 2:
            scene.log.warn(f"createNode missing type at {where}")
            return None

        node_type = tokens[1]
        name = parent = None
        i = 2
        while i < len(tokens):
            flag = tokens[i]
            if flag in ("-n", "-name") and i + 1 < len(tokens):
                name = tokens[i + 1]
                i += 2
            elif flag in ("-p", "-parent") and i + 1 < len(tokens):
                parent = tokens[i + 1]
                i += 2
            else:
                i += 1

        if not name:
            scene.log.warn(f"createNode missing -n at {where}")
            return None

        created_parent = parent is not None and parent not in scene.nodes
        node = scene.get_or_create_node(name, node_type, parent)
        if node.node_type != node_type:
            node.node_type = node_type
        if parent and node.parent_name != parent:
            scene.set_parent(name, parent)

        scene.mark_provenance(name, self.provenance, "commands")
        if created_parent:
            scene.mark_provenance(parent, self.provenance, "commands")
        return name

    def _set_attr(self, scene: SceneGraph, tokens: list[str], current: Optional[str]) -> Optional[str]:
        type_name = "raw"
        i = 1
        while i < len(tokens) and is_flag(tokens[i]):
            flag = tokens[i]
            if flag in ("-type", "-typ") and i + 1 < len(tokens):
                type_name = tokens[i + 1]
                i += 2
            elif flag in SETATTR_VALUE_FLAGS and i + 1 < len(tokens) and not is_flag(tokens[i + 1]):
                i += 2
            else:
                i += 1
        if i >= len(tokens):
            return None

        plug = tokens[i]
        values = []
        rest = tokens[i + 1 :]
        j = 0
        while j < len(rest):
            if rest[j] in ("-type", "-typ") and j + 1 < len(rest):
                type_name = rest[j + 1]
                j += 2
                continue
            values.append(rest[j])
            j += 1

        target, key = split_plug(plug, current)
        if not target:
            return None

        node = scene.get_or_create_node(target)
        scene.mark_provenance(target, self.provenance, "commands")
        if values:
            node.set_attr(key, values, type_name, self.provenance)
        return target

    def _connect_attr(self, scene: SceneGraph, tokens: list[str], where: str) -> None:
        force = False
        plugs = []
        for token in tokens[1:]:
            if token in ("-f", "-force"):
                force = True
            elif not is_flag(token):
                plugs.append(token)
        if len(plugs) < 2:
            scene.log.warn(f"connectAttr missing args at {where}")
            return
        # Duplicates are kept in the model; merging deduplicates them
        scene.connections.append(ConnectionRecord(plugs[0], plugs[1], force))

    def _parent(self, scene: SceneGraph, tokens: list[str], where: str) -> None:
        world = False
        args = []
        for token in tokens[1:]:
            if token in ("-w", "-world"):
                world = True
            elif token in PARENT_SWITCHES:
                continue
            elif not is_flag(token):
                args.append(token)

        if not args:
            scene.log.warn(f"parent missing args at {where}")
            return

        if world or len(args) == 1:
            child, new_parent = args[0], None
        else:
            child, new_parent = args[-2], args[-1]

        scene.get_or_create_node(child)
        scene.mark_provenance(child, self.provenance, "commands")
        if not scene.set_parent(child, new_parent):
            scene.log.warn(f"parent {child} -> {new_parent} refused (cycle) at {where}")

    def _rename(
        self, scene: SceneGraph, tokens: list[str], current: Optional[str], where: str
    ) -> Optional[str]:
        args = [t for t in tokens[1:] if not is_flag(t)]
        if len(args) >= 2:
            old, new = args[0], args[1]
        elif len(args) == 1 and current:
            old, new = current, args[0]
        else:
            scene.log.warn(f"rename missing args at {where}")
            return None

        if old not in scene.nodes or old == new:
            return None
        if new in scene.nodes:
            scene.log.warn(f"rename {old} -> {new} refused (name exists) at {where}")
            return None

        rename_node(scene, old, new)
        return new


def split_plug(plug: str, current: Optional[str]) -> tuple[Optional[str], str]:
    """Resolve 'node.attr' or '.attr' into (node name, '.attr' key)."""
    if plug.startswith("."):
        return current, plug
    dot = plug.find(".")
    if dot > 0:
        return plug[:dot], plug[dot:]
    return current, "." + plug


def rename_node(scene: SceneGraph, old: str, new: str) -> None:
    """Rename a node in place, keeping insertion order and child links."""
    renamed = {}
    for name, node in scene.nodes.items():
        if name == old:
            node.name = new
            name = new
        if node.parent_name == old:
            node.parent_name = new
        renamed[name] = node
    scene.nodes = renamed

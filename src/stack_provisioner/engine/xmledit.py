"""Structured edits of Tomcat XML configuration.

Edits go through ElementTree instead of line patterns, which lets them
check for existing entries first. Re-applying an edit is a no-op.

Comments inside the root element are kept. Everything before the root
element (XML declaration, license header) is copied through verbatim.
"""

import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass

from stack_provisioner.errors import ProvisionError

REMOTE_ADDR_VALVE = "org.apache.catalina.valves.RemoteAddrValve"

_ROOT_START = re.compile(r"<(?![?!])")
_CHILD_INDENT = "\n  "


class XMLEditError(ProvisionError):
    """The document could not be parsed."""


@dataclass
class XMLEdit:
    """Result of an edit: the new document text and what changed."""

    text: str
    changes: list[str]

    @property
    def changed(self) -> bool:
        return bool(self.changes)


def _parse(text: str) -> tuple[str, ET.Element]:
    """Split ``text`` into its verbatim prolog and the parsed root element.

    A default namespace is folded back into a plain ``xmlns`` attribute so
    element and attribute names stay unqualified while editing.
    """
    match = _ROOT_START.search(_strip_comments(text))
    if not match:
        raise XMLEditError("Document has no root element")
    prolog = text[: match.start()]

    parser = ET.XMLParser(target=ET.TreeBuilder(insert_comments=True))
    try:
        root = ET.fromstring(text, parser=parser)
    except ET.ParseError as e:
        raise XMLEditError(f"Malformed XML: {e}") from e

    ns = _namespace(root)
    if ns:
        prefix = f"{{{ns}}}"
        for elem in root.iter():
            if isinstance(elem.tag, str) and elem.tag.startswith(prefix):
                elem.tag = elem.tag[len(prefix):]
        attrib = dict(root.attrib)
        root.attrib.clear()
        root.set("xmlns", ns)
        root.attrib.update(attrib)
    return prolog, root


def _strip_comments(text: str) -> str:
    """Blank out comments while keeping offsets, so markup in them is ignored."""
    return re.sub(r"<!--.*?-->", lambda m: " " * len(m.group(0)), text, flags=re.DOTALL)


def _namespace(root: ET.Element) -> str | None:
    if root.tag.startswith("{"):
        return root.tag[1:].split("}", 1)[0]
    return None


def _serialize(prolog: str, root: ET.Element) -> str:
    root.tail = None
    body = ET.tostring(root, encoding="unicode")
    return f"{prolog}{body}\n"


def _append(parent: ET.Element, elem: ET.Element) -> None:
    """Append ``elem`` as the last child, keeping the surrounding layout."""
    if len(parent):
        last = parent[-1]
        elem.tail = last.tail
        last.tail = _CHILD_INDENT
    else:
        elem.tail = parent.text or "\n"
        parent.text = _CHILD_INDENT
    parent.append(elem)


def ensure_tomcat_user(
    text: str,
    username: str,
    roles: list[str],
    password: str | None = None,
) -> XMLEdit:
    """Make ``tomcat-users.xml`` define ``roles`` and a user holding them.

    Missing ``<role>`` entries are added. A missing user is added with
    ``password`` (required in that case). An existing user keeps any extra
    roles it already has and only gets its password replaced when
    ``password`` is given and differs.
    """
    prolog, root = _parse(text)
    changes: list[str] = []

    existing_roles = {e.get("rolename") for e in root.iter("role")}
    for role in roles:
        if role not in existing_roles:
            _append(root, ET.Element("role", {"rolename": role}))
            changes.append(f"added role {role}")

    user = next(
        (e for e in root.iter("user") if e.get("username") == username),
        None,
    )
    if user is None:
        if not password:
            raise XMLEditError(f"User '{username}' does not exist and no password was given")
        _append(
            root,
            ET.Element(
                "user",
                {"username": username, "password": password, "roles": ",".join(roles)},
            ),
        )
        changes.append(f"added user {username}")
    else:
        current = [r.strip() for r in (user.get("roles") or "").split(",") if r.strip()]
        merged = current + [r for r in roles if r not in current]
        if merged != current:
            user.set("roles", ",".join(merged))
            changes.append(f"updated roles of {username}")
        if password and user.get("password") != password:
            user.set("password", password)
            changes.append(f"updated password of {username}")

    if not changes:
        return XMLEdit(text=text, changes=[])
    return XMLEdit(text=_serialize(prolog, root), changes=changes)


def remove_remote_addr_valve(text: str) -> XMLEdit:
    """Remove every RemoteAddrValve element from a webapp ``context.xml``."""
    prolog, root = _parse(text)
    changes: list[str] = []

    for parent in list(root.iter()):
        children = list(parent)
        for index, child in enumerate(children):
            if not isinstance(child.tag, str) or not child.tag.endswith("Valve"):
                continue
            if child.get("className") != REMOTE_ADDR_VALVE:
                continue
            # Keep the whitespace that followed the last child
            if index == len(children) - 1:
                if index > 0:
                    children[index - 1].tail = child.tail
                else:
                    parent.text = child.tail
            parent.remove(child)
            changes.append(f"removed RemoteAddrValve (allow={child.get('allow', '')})")

    if not changes:
        return XMLEdit(text=text, changes=[])
    return XMLEdit(text=_serialize(prolog, root), changes=changes)


def has_tomcat_user(text: str, username: str) -> bool:
    """Whether ``tomcat-users.xml`` already defines ``username``."""
    _, root = _parse(text)
    return any(e.get("username") == username for e in root.iter("user"))

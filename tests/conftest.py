"""Pytest configuration and fixtures for stack-provisioner tests."""

import re
from contextlib import contextmanager

import pytest

from stack_provisioner.connector.base import CommandResult, Connector
from stack_provisioner.errors import LockError
from stack_provisioner.settings import ProvisionSettings


class FakeConnector(Connector):
    """In-memory target: records commands and files, never touches the host.

    Commands succeed unless a rule registered with ``respond`` matches.
    Packages listed in ``installed`` are reported installed by dpkg-query.
    """

    target = "fake-host"

    def __init__(self, root: bool = True) -> None:
        self.root = root
        self.files: dict[str, str] = {}
        self.modes: dict[str, int] = {}
        self.owners: dict[str, tuple[str | None, str | None]] = {}
        self.dirs: set[str] = set()
        self.commands: list[CommandResult] = []
        self.inputs: dict[str, str] = {}
        self.writes: list[str] = []
        self.installed: set[str] = set()
        self.available: set[str] = set()
        self.locked = False
        self._rules: list[tuple[str, CommandResult]] = []

    def respond(self, pattern: str, exit_code: int = 0, stdout: str = "", stderr: str = "") -> None:
        """Make commands matching the regex ``pattern`` return this result."""
        self._rules.insert(0, (pattern, CommandResult(pattern, stdout, stderr, exit_code)))

    def fail_on(self, pattern: str, stderr: str = "error") -> None:
        self.respond(pattern, exit_code=1, stderr=stderr)

    @property
    def command_lines(self) -> list[str]:
        return [result.command for result in self.commands]

    def ran(self, pattern: str) -> bool:
        return any(re.search(pattern, line) for line in self.command_lines)

    def run(self, command, *, input=None, cwd=None, user=None, env=None, sensitive=False) -> CommandResult:
        if input is not None:
            self.inputs[command] = input

        for pattern, canned in self._rules:
            if re.search(pattern, command):
                result = CommandResult(command, canned.stdout, canned.stderr, canned.exit_code, sensitive=sensitive)
                break
        else:
            result = self._default(command, sensitive)

        self.commands.append(result)
        return result

    def _default(self, command: str, sensitive: bool) -> CommandResult:
        match = re.match(r"dpkg-query .* (\S+)$", command)
        if match:
            package = match.group(1).strip("'")
            if package in self.installed:
                return CommandResult(command, "install ok installed", "", 0)
            return CommandResult(command, "", "no packages found", 1)

        match = re.match(r"mkdir -p (\S+)$", command)
        if match:
            self.dirs.add(match.group(1))

        match = re.match(r"cp -p (\S+) (\S+)$", command)
        if match and match.group(1) in self.files:
            self.files[match.group(2)] = self.files[match.group(1)]
        return CommandResult(command, "", "", 0, sensitive=sensitive)

    def is_root(self) -> bool:
        return self.root

    def read_file(self, path: str) -> str | None:
        return self.files.get(path)

    def file_exists(self, path: str) -> bool:
        return path in self.files

    def dir_exists(self, path: str) -> bool:
        return path in self.dirs

    def which(self, command: str) -> bool:
        return command in self.available

    def write_file(self, path, content, *, mode=0o644, owner=None, group=None) -> None:
        self.files[path] = content
        self.modes[path] = mode
        self.owners[path] = (owner, group)
        self.writes.append(path)

    @contextmanager
    def lock(self, path: str):
        if self.locked:
            raise LockError(f"Another provisioning run holds {path}")
        self.locked = True
        try:
            yield
        finally:
            self.locked = False


@pytest.fixture
def fake():
    return FakeConnector()


@pytest.fixture
def unprivileged():
    return FakeConnector(root=False)


@pytest.fixture
def settings():
    return ProvisionSettings.load(environ={})


@pytest.fixture
def tomcat_users_xml():
    """tomcat-users.xml as shipped with Tomcat 10."""
    return """<?xml version="1.0" encoding="UTF-8"?>
<!--
  Licensed to the Apache Software Foundation (ASF) under one or more
  contributor license agreements.
-->
<tomcat-users xmlns="http://tomcat.apache.org/xml"
              xmlns:xsi="http://www.w3.org/2001/XMLSchema-instance"
              xsi:schemaLocation="http://tomcat.apache.org/xml tomcat-users.xsd"
              version="1.0">
<!--
  <role rolename="tomcat"/>
  <user username="tomcat" password="<must-be-changed>" roles="tomcat"/>
-->
</tomcat-users>
"""


@pytest.fixture
def manager_context_xml():
    """META-INF/context.xml of the manager webapp."""
    return """<?xml version="1.0" encoding="UTF-8"?>
<Context antiResourceLocking="false" privileged="true" >
  <CookieProcessor className="org.apache.tomcat.util.http.Rfc6265CookieProcessor"
                   sameSiteCookies="strict" />
  <Valve className="org.apache.catalina.valves.RemoteAddrValve"
         allow="127\\.\\d+\\.\\d+\\.\\d+|::1|0:0:0:0:0:0:0:1" />
  <Manager sessionAttributeValueClassNameFilter="java\\.lang\\.(?:Boolean|Integer|Long|Number|String)"/>
</Context>
"""

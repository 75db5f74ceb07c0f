"""Tests for structured Tomcat XML edits."""

import pytest

from stack_provisioner.engine.xmledit import (
    XMLEditError,
    ensure_tomcat_user,
    has_tomcat_user,
    remove_remote_addr_valve,
)

ROLES = ["admin-gui", "manager-gui"]


class TestEnsureTomcatUser:
    def test_adds_roles_and_user(self, tomcat_users_xml):
        edit = ensure_tomcat_user(tomcat_users_xml, "admin", ROLES, password="s3cret")

        assert edit.changed
        assert '<role rolename="admin-gui" />' in edit.text
        assert '<role rolename="manager-gui" />' in edit.text
        assert '<user username="admin" password="s3cret" roles="admin-gui,manager-gui" />' in edit.text
        assert has_tomcat_user(edit.text, "admin")

    def test_keeps_prolog_comments_and_namespace(self, tomcat_users_xml):
        text = ensure_tomcat_user(tomcat_users_xml, "admin", ROLES, password="pw").text

        assert text.startswith('<?xml version="1.0" encoding="UTF-8"?>\n<!--\n  Licensed to the Apache')
        assert 'xmlns="http://tomcat.apache.org/xml"' in text
        assert "ns0:" not in text
        assert '<user username="tomcat" password="&lt;must-be-changed&gt;"' not in text
        assert '<user username="tomcat" password="<must-be-changed>" roles="tomcat"/>' in text

    def test_second_run_is_idempotent(self, tomcat_users_xml):
        first = ensure_tomcat_user(tomcat_users_xml, "admin", ROLES, password="pw")
        second = ensure_tomcat_user(first.text, "admin", ROLES)

        assert not second.changed
        assert second.text == first.text
        assert second.text.count('<user username="admin"') == 1
        assert second.text.count('rolename="admin-gui"') == 1
        assert second.text.count('rolename="manager-gui"') == 1

    def test_same_password_again_changes_nothing(self, tomcat_users_xml):
        first = ensure_tomcat_user(tomcat_users_xml, "admin", ROLES, password="pw")
        assert not ensure_tomcat_user(first.text, "admin", ROLES, password="pw").changed

    def test_existing_user_gets_missing_roles_merged(self):
        xml = '<tomcat-users>\n  <user username="admin" password="pw" roles="tomcat"/>\n</tomcat-users>\n'
        edit = ensure_tomcat_user(xml, "admin", ROLES)

        assert 'roles="tomcat,admin-gui,manager-gui"' in edit.text
        assert "updated roles of admin" in edit.changes

    def test_configured_password_replaces_existing(self):
        xml = '<tomcat-users>\n  <user username="admin" password="old" roles="admin-gui,manager-gui"/>\n</tomcat-users>\n'
        edit = ensure_tomcat_user(xml, "admin", [], password="new")

        assert 'password="new"' in edit.text
        assert edit.changes == ["updated password of admin"]

    def test_new_user_without_password_is_rejected(self, tomcat_users_xml):
        with pytest.raises(XMLEditError):
            ensure_tomcat_user(tomcat_users_xml, "admin", ROLES)

    def test_malformed_xml_raises(self):
        with pytest.raises(XMLEditError, match="Malformed XML"):
            ensure_tomcat_user("<tomcat-users><user></tomcat-users>", "admin", ROLES, password="pw")


class TestRemoveRemoteAddrValve:
    def test_removes_valve_and_keeps_siblings(self, manager_context_xml):
        edit = remove_remote_addr_valve(manager_context_xml)

        assert edit.changed
        assert "RemoteAddrValve" not in edit.text
        assert "CookieProcessor" in edit.text
        assert "<Manager " in edit.text
        assert edit.text.startswith('<?xml version="1.0" encoding="UTF-8"?>\n<Context')

    def test_no_valve_is_unchanged(self, manager_context_xml):
        relaxed = remove_remote_addr_valve(manager_context_xml).text
        again = remove_remote_addr_valve(relaxed)

        assert not again.changed
        assert again.changes == []
        assert again.text == relaxed

    def test_other_valves_are_kept(self):
        xml = (
            "<Context>\n"
            '  <Valve className="org.apache.catalina.valves.AccessLogValve"/>\n'
            '  <Valve className="org.apache.catalina.valves.RemoteAddrValve" allow="127.0.0.1"/>\n'
            "</Context>\n"
        )
        edit = remove_remote_addr_valve(xml)

        assert "AccessLogValve" in edit.text
        assert "RemoteAddrValve" not in edit.text
        assert len(edit.changes) == 1

    def test_no_root_element_raises(self):
        with pytest.raises(XMLEditError):
            remove_remote_addr_valve("<!-- only a comment -->\n")

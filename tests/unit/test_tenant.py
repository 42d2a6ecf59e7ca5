# Copyright (c) 2026 Store Orchestrator Contributors. All Rights Reserved.
"""Unit tests for the Tenant record and its state machine."""

import dataclasses

import pytest

from store_orchestrator.core.tenant import Tenant, TenantStatus, can_transition

from conftest import make_tenant


class TestTenantStatus:
    @pytest.mark.parametrize("current,target", [
        (TenantStatus.PROVISIONING, TenantStatus.READY),
        (TenantStatus.PROVISIONING, TenantStatus.FAILED),
        (TenantStatus.PROVISIONING, TenantStatus.DELETING),
        (TenantStatus.READY, TenantStatus.DELETING),
        (TenantStatus.FAILED, TenantStatus.DELETING),
        (TenantStatus.DELETING, TenantStatus.DELETING),
    ])
    def test_allowed(self, current, target):
        assert can_transition(current, target)

    @pytest.mark.parametrize("current,target", [
        (TenantStatus.READY, TenantStatus.PROVISIONING),
        (TenantStatus.READY, TenantStatus.FAILED),
        (TenantStatus.FAILED, TenantStatus.READY),
        (TenantStatus.DELETING, TenantStatus.READY),
    ])
    def test_forbidden(self, current, target):
        assert not can_transition(current, target)


class TestTenant:
    def test_defaults(self):
        t = make_tenant()
        assert t.status == TenantStatus.PROVISIONING
        assert t.failure_reason is None
        assert t.created_at.tzinfo is not None

    def test_immutable(self):
        t = make_tenant()
        with pytest.raises(dataclasses.FrozenInstanceError):
            t.status = TenantStatus.READY

    def test_with_status_keeps_reason_only_for_failed(self):
        failed = make_tenant().with_status(TenantStatus.FAILED, "boom")
        assert failed.failure_reason == "boom"
        deleting = failed.with_status(TenantStatus.DELETING, "ignored")
        assert deleting.failure_reason is None

    def test_reason_rejected_on_non_failed(self):
        with pytest.raises(ValueError):
            make_tenant(status=TenantStatus.READY, failure_reason="nope")

    def test_empty_id_rejected(self):
        with pytest.raises(ValueError):
            Tenant(id="", namespace="store-", engine="woocommerce", url="http://x")

    def test_to_dict(self):
        data = make_tenant("0f0f0f0f").to_dict()
        assert data["id"] == "0f0f0f0f"
        assert data["namespace"] == "store-0f0f0f0f"
        assert data["status"] == "Provisioning"
        assert data["url"] == "http://store-0f0f0f0f.127.0.0.1.nip.io"
        assert data["failureReason"] is None
        assert "createdAt" in data

"""Test webhook discovery and creation."""

import pytest

from mirror.adapters.base import EndpointInfo
from mirror.config import cfg
from mirror.core.errors import EndpointProvisioningFailed
from mirror.gateway.provisioner import EndpointProvisioner, select_endpoint
from mirror.gateway.router import EndpointRef
from tests.mocks import FakePlatform


class TestSelectEndpoint:
    def test_skips_tokenless(self):
        endpoints = [EndpointInfo("1", "other bot", None), EndpointInfo("2", "Mirror Bot", "tok")]
        assert select_endpoint(endpoints) == EndpointRef("2", "tok")

    def test_none_usable(self):
        assert select_endpoint([EndpointInfo("1", "x", None)]) is None
        assert select_endpoint([]) is None


class TestEndpointProvisioner:
    @pytest.mark.asyncio
    async def test_known_reference_bypasses_platform(self):
        # Arrange
        platform = FakePlatform()
        provisioner = EndpointProvisioner(platform)
        known = EndpointRef("7", "tok")

        # Act
        ref = await provisioner.provision("D1", known=known)

        # Assert
        assert ref == known
        assert platform.list_calls == []
        assert platform.create_calls == []
        assert provisioner.provisioning_calls == 0
        assert provisioner.cached("D1") == known

    @pytest.mark.asyncio
    async def test_reuses_existing_webhook_with_token(self):
        platform = FakePlatform()
        platform.endpoints["D1"] = [EndpointInfo("1", "foreign", None), EndpointInfo("2", "Mirror Bot", "tok")]
        provisioner = EndpointProvisioner(platform)

        ref = await provisioner.provision("D1")

        assert ref == EndpointRef("2", "tok")
        assert platform.create_calls == []
        assert provisioner.provisioning_calls == 1

    @pytest.mark.asyncio
    async def test_creates_when_none_usable(self):
        platform = FakePlatform()
        platform.endpoints["D1"] = [EndpointInfo("1", "foreign", None)]
        provisioner = EndpointProvisioner(platform, name="Mirror Bot", reason="Mirror System")

        ref = await provisioner.provision("D1")

        assert len(platform.create_calls) == 1
        call = platform.create_calls[0]
        assert call["name"] == "Mirror Bot"
        assert call["reason"] == "Mirror System"
        assert call["avatar_url"] == platform.self_avatar_url
        assert ref.token

    @pytest.mark.asyncio
    async def test_second_provision_uses_cache(self):
        platform = FakePlatform()
        provisioner = EndpointProvisioner(platform)
        first = await provisioner.provision("D1")
        second = await provisioner.provision("D1")
        assert first == second
        assert len(platform.create_calls) == 1
        assert provisioner.provisioning_calls == 1

    @pytest.mark.asyncio
    async def test_forget_drops_cache(self):
        platform = FakePlatform()
        provisioner = EndpointProvisioner(platform)
        await provisioner.provision("D1")
        provisioner.forget("D1")
        await provisioner.provision("D1")
        # Second round finds the webhook created by the first
        assert len(platform.create_calls) == 1
        assert platform.list_calls == ["D1", "D1"]

    @pytest.mark.asyncio
    async def test_listing_failure_still_attempts_create(self):
        platform = FakePlatform()
        platform.fail_list = True
        provisioner = EndpointProvisioner(platform)

        ref = await provisioner.provision("D1")

        assert ref is not None
        assert len(platform.create_calls) == 1

    @pytest.mark.asyncio
    async def test_create_failure_raises(self):
        platform = FakePlatform()
        platform.fail_create = True
        provisioner = EndpointProvisioner(platform)

        with pytest.raises(EndpointProvisioningFailed) as exc_info:
            await provisioner.provision("D1")

        assert isinstance(exc_info.value.original_error, PermissionError)
        assert exc_info.value.details == {"channel_id": "D1"}
        assert provisioner.cached("D1") is None

    @pytest.mark.asyncio
    async def test_webhook_name_follows_config_reload(self):
        platform = FakePlatform()
        provisioner = EndpointProvisioner(platform)
        cfg.reload({"endpoint_name": "Relay", "endpoint_reason": "Channel relay"})

        await provisioner.provision("D1")

        assert platform.create_calls[0]["name"] == "Relay"
        assert platform.create_calls[0]["reason"] == "Channel relay"

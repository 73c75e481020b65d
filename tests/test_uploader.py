import asyncio
import re

import httpx
import pytest

from errors import ConfigurationError, PublishError
from uploader import ImagePublisher


def slot_of(request):
    return int(re.search(rb"business-cards/\S+_(\d)", request.content).group(1))


def test_urls_keep_input_order_even_when_uploads_finish_out_of_order(front, back):
    seen = []

    async def handler(request):
        slot = slot_of(request)
        # first upload finishes last
        await asyncio.sleep(0.05 if slot == 1 else 0)
        seen.append(slot)
        return httpx.Response(200, json={"secure_url": f"https://host/{slot}.png"})

    publisher = ImagePublisher("demo", "preset", transport=httpx.MockTransport(handler))
    urls = asyncio.run(publisher.publish([front, back], "card_1"))

    assert urls == ["https://host/1.png", "https://host/2.png"]
    assert seen == [2, 1]


def test_upload_request_carries_preset_public_id_and_bytes(front):
    requests = []

    def handler(request):
        requests.append(request)
        return httpx.Response(200, json={"secure_url": "https://host/1.png"})

    publisher = ImagePublisher("demo", "preset", transport=httpx.MockTransport(handler))
    asyncio.run(publisher.publish([front], "card_42"))

    request = requests[0]
    assert str(request.url) == "https://api.cloudinary.com/v1_1/demo/image/upload"
    assert b"business-cards/card_42_1" in request.content
    assert b"preset" in request.content
    assert b"front-side" in request.content


def test_one_failed_upload_fails_the_batch(front, back):
    def handler(request):
        if slot_of(request) == 2:
            return httpx.Response(400, json={"error": {"message": "Upload preset not found"}})
        return httpx.Response(200, json={"secure_url": "https://host/1.png"})

    publisher = ImagePublisher("demo", "preset", transport=httpx.MockTransport(handler))

    with pytest.raises(PublishError, match="Upload preset not found"):
        asyncio.run(publisher.publish([front, back], "card_1"))


def test_error_without_json_body_gets_generic_message(front):
    publisher = ImagePublisher(
        "demo", "preset",
        transport=httpx.MockTransport(lambda request: httpx.Response(502, text="Bad gateway")),
    )

    with pytest.raises(PublishError, match="HTTP 502"):
        asyncio.run(publisher.publish([front], "card_1"))


def test_transport_error_is_wrapped(front):
    def handler(request):
        raise httpx.ConnectError("network unreachable", request=request)

    publisher = ImagePublisher("demo", "preset", transport=httpx.MockTransport(handler))

    with pytest.raises(PublishError, match="network unreachable") as info:
        asyncio.run(publisher.publish([front], "card_1"))
    assert isinstance(info.value.__cause__, httpx.ConnectError)


def test_success_without_url_is_an_error(front):
    publisher = ImagePublisher(
        "demo", "preset",
        transport=httpx.MockTransport(lambda request: httpx.Response(200, json={})),
    )

    with pytest.raises(PublishError):
        asyncio.run(publisher.publish([front], "card_1"))


def test_missing_configuration_fails_before_upload(front, clean_env):
    calls = []
    clean_env.setenv("CLOUDINARY_CLOUD_NAME", "demo")
    clean_env.setenv("CLOUDINARY_UPLOAD_PRESET", "your_upload_preset_here")

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json={"secure_url": "x"})

    publisher = ImagePublisher(transport=httpx.MockTransport(handler))
    with pytest.raises(ConfigurationError, match="CLOUDINARY_UPLOAD_PRESET"):
        asyncio.run(publisher.publish([front], "card_1"))
    assert calls == []


def test_settings_read_from_environment(front, clean_env):
    clean_env.setenv("CLOUDINARY_CLOUD_NAME", "envcloud")
    clean_env.setenv("CLOUDINARY_UPLOAD_PRESET", "envpreset")
    urls = []

    def handler(request):
        urls.append(str(request.url))
        return httpx.Response(200, json={"secure_url": "https://host/1.png"})

    publisher = ImagePublisher(transport=httpx.MockTransport(handler))
    asyncio.run(publisher.publish([front], "card_1"))

    assert urls == ["https://api.cloudinary.com/v1_1/envcloud/image/upload"]


@pytest.mark.parametrize("body", [[], "ok", None])
def test_success_body_that_is_not_an_object_is_an_error(front, body):
    publisher = ImagePublisher(
        "demo", "preset",
        transport=httpx.MockTransport(lambda request: httpx.Response(200, json=body)),
    )

    with pytest.raises(PublishError, match="did not contain a URL"):
        asyncio.run(publisher.publish([front], "card_1"))

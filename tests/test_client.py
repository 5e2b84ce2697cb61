"""
End-to-end tests for MantaBucketsClient.

Exercises every public operation through the real HttpTransport against the
in-memory fake service, including the full bucket/object lifecycle, error
classification and client shutdown.
"""
from __future__ import annotations

import asyncio
import inspect
import io

import httpx
import pytest

from manta_buckets.client import MantaBucketsClient
from manta_buckets.errors import (
    ClientClosedError,
    HTTPStatusError,
    InvalidArgument,
    NotFoundError,
    PayloadStreamError,
)
from manta_buckets.models import BucketEntry, BucketObjectEntry
from manta_buckets.paths import Operation
from manta_buckets.settings import Settings
from manta_buckets.storage.http_transport import HttpTransport

HELLO_MD5 = "XUFAKrxLKna5cZ2REBfFkg=="


class TestObjectLifecycle:
    """The create/upload/head/update/list/delete round trip."""

    async def test_full_lifecycle(self, client):
        await client.create_bucket("b1")
        await client.head_bucket("b1")

        await client.create_bucket_object(b"hello", "b1", "o1", headers={"m-foo": "bar"})
        head = await client.head_bucket_object("b1", "o1")
        assert head.content_md5 == HELLO_MD5
        assert head.content_length == 5
        assert head.metadata == {"foo": "bar"}

        async with await client.get_bucket_object("b1", "o1") as download:
            assert download.metadata == {"foo": "bar"}
            assert await download.stream.read() == b"hello"
            assert download.stream.content_md5 == HELLO_MD5

        await client.put_bucket_object_metadata("b1", "o1", metadata={"foo": "baz"})
        head = await client.head_bucket_object("b1", "o1")
        assert head.metadata == {"foo": "baz"}
        assert head.content_md5 == HELLO_MD5

        objects = await client.list_bucket_objects("b1").collect()
        assert [entry.name for entry in objects] == ["o1"]
        assert objects[0].size == 5
        assert objects[0].content_md5 == HELLO_MD5

        await client.delete_bucket_object("b1", "o1")
        with pytest.raises(NotFoundError):
            await client.head_bucket_object("b1", "o1")

        await client.delete_bucket("b1")
        with pytest.raises(NotFoundError):
            await client.head_bucket("b1")

    async def test_heads_are_idempotent(self, client, fake_service):
        fake_service.add_object("b1", "o1", b"hello", metadata={"m-foo": "bar"})
        first = await client.head_bucket_object("b1", "o1")
        second = await client.head_bucket_object("b1", "o1")
        assert first.headers == second.headers
        for name in ("content-md5", "content-length", "etag", "m-foo"):
            assert name in first.headers
        assert first.metadata == {"foo": "bar"}
        assert first.content_md5 == HELLO_MD5
        assert fake_service.buckets["b1"].objects["o1"].data == b"hello"

    async def test_gets_are_idempotent(self, client, fake_service):
        fake_service.add_object("b1", "o1", b"hello", metadata={"m-foo": "bar"})
        downloads = []
        for _ in range(2):
            async with await client.get_bucket_object("b1", "o1") as download:
                assert await download.stream.read() == b"hello"
                downloads.append(download)
        first, second = downloads
        assert first.headers == second.headers
        assert first.content_md5 == HELLO_MD5
        assert first.content_length == 5
        assert first.headers["etag"] == fake_service.buckets["b1"].objects["o1"].etag
        assert first.metadata == {"foo": "bar"}

    async def test_head_and_get_agree(self, client, fake_service):
        fake_service.add_object("b1", "o1", b"hello", metadata={"m-foo": "bar"})
        head = await client.head_bucket_object("b1", "o1")
        async with await client.get_bucket_object("b1", "o1") as download:
            await download.stream.read()
        for name in ("content-md5", "content-length", "etag", "m-foo"):
            assert head.headers[name] == download.headers[name]

    async def test_metadata_argument_encoded(self, client, fake_service):
        fake_service.add_bucket("b1")
        await client.create_bucket_object(b"x", "b1", "o1", metadata={"Color": "blue", "owner": "ops"})
        stored = fake_service.buckets["b1"].objects["o1"]
        assert stored.metadata == {"m-color": "blue", "m-owner": "ops"}

    async def test_content_type_default_and_override(self, client, fake_service):
        fake_service.add_bucket("b1")
        await client.create_bucket_object(b"x", "b1", "raw")
        await client.create_bucket_object(b"x", "b1", "text", content_type="text/plain")
        assert fake_service.buckets["b1"].objects["raw"].content_type == "application/octet-stream"
        assert fake_service.buckets["b1"].objects["text"].content_type == "text/plain"

    async def test_streamed_upload_and_chunked_download(self, client, fake_service):
        fake_service.add_bucket("b1")
        data = bytes(range(256)) * 40

        await client.create_bucket_object(io.BytesIO(data), "b1", "blob", content_length=len(data))

        async with await client.get_bucket_object("b1", "blob") as download:
            received = [chunk async for chunk in download.stream]
        assert len(received) > 1
        assert b"".join(received) == data

    async def test_object_names_with_reserved_characters(self, client, fake_service):
        fake_service.add_bucket("b1")
        name = "dir/sub dir/file?.txt"
        await client.create_bucket_object(b"x", "b1", name)
        assert name in fake_service.buckets["b1"].objects
        head = await client.head_bucket_object("b1", name)
        assert head.content_length == 1


class TestListings:

    async def test_empty_bucket_lists_nothing(self, client, fake_service):
        fake_service.add_bucket("b1")
        assert await client.list_bucket_objects("b1").collect() == []

    async def test_list_buckets(self, client, fake_service):
        for name in ("b2", "b1", "b3"):
            fake_service.add_bucket(name)
        buckets = await client.list_buckets().collect()
        assert all(isinstance(entry, BucketEntry) for entry in buckets)
        assert [entry.name for entry in buckets] == ["b1", "b2", "b3"]

    async def test_records_survive_small_chunks(self, client, fake_service):
        fake_service.chunk_size = 1
        for index in range(5):
            fake_service.add_object("b1", f"o{index}", b"x" * index)
        objects = await client.list_bucket_objects("b1").collect()
        assert all(isinstance(entry, BucketObjectEntry) for entry in objects)
        assert [(entry.name, entry.size) for entry in objects] == [(f"o{i}", i) for i in range(5)]

    async def test_prefix_limit_and_marker(self, client, fake_service):
        for name in ("logs/a", "logs/b", "logs/c", "other"):
            fake_service.add_object("b1", name, b"x")

        stream = client.list_bucket_objects("b1", prefix="logs/", limit=2)
        assert [entry.name for entry in await stream.collect()] == ["logs/a", "logs/b"]
        assert stream.next_marker == "logs/b"

        stream = client.list_bucket_objects("b1", prefix="logs/", marker=stream.next_marker)
        assert [entry.name for entry in await stream.collect()] == ["logs/c"]
        assert stream.next_marker is None

    async def test_missing_bucket(self, client):
        with pytest.raises(NotFoundError) as exc_info:
            await client.list_bucket_objects("nope").collect()
        assert exc_info.value.code == "BucketNotFound"

    async def test_listing_is_lazy(self, client, fake_service):
        fake_service.add_bucket("b1")
        stream = client.list_bucket_objects("b1")
        assert fake_service.requests == []
        await stream.aclose()
        assert fake_service.requests == []

    async def test_bad_listing_arguments_fail_immediately(self, client, fake_service):
        with pytest.raises(InvalidArgument):
            client.list_bucket_objects("")
        with pytest.raises(InvalidArgument):
            client.list_buckets(limit=0)
        assert fake_service.requests == []


class TestErrors:

    async def test_missing_bucket_and_object(self, client, fake_service):
        with pytest.raises(NotFoundError):
            await client.head_bucket("nope")
        with pytest.raises(NotFoundError):
            await client.create_bucket_object(b"x", "nope", "o1")
        fake_service.add_bucket("b1")
        with pytest.raises(NotFoundError) as exc_info:
            await client.get_bucket_object("b1", "nope")
        assert exc_info.value.code == "ObjectNotFound"
        with pytest.raises(NotFoundError):
            await client.put_bucket_object_metadata("b1", "nope", metadata={"a": "b"})
        with pytest.raises(NotFoundError):
            await client.delete_bucket_object("b1", "nope")

    async def test_deleting_non_empty_bucket(self, client, fake_service):
        fake_service.add_object("b1", "o1", b"x")
        with pytest.raises(HTTPStatusError) as exc_info:
            await client.delete_bucket("b1")
        assert exc_info.value.status_code == 409
        assert exc_info.value.code == "BucketNotEmpty"
        assert not isinstance(exc_info.value, NotFoundError)

    async def test_empty_names_never_reach_the_network(self, client, fake_service):
        with pytest.raises(InvalidArgument):
            await client.create_bucket("")
        with pytest.raises(InvalidArgument):
            await client.head_bucket_object("b1", "")
        with pytest.raises(InvalidArgument):
            await client.create_bucket_object(b"x", "", "o1")
        assert fake_service.requests == []

    @pytest.mark.parametrize("content_length", [-1, True, "5"])
    async def test_bad_content_length(self, client, content_length):
        with pytest.raises(InvalidArgument):
            await client.create_bucket_object(b"x", "b1", "o1", content_length=content_length)

    @pytest.mark.parametrize("declared", ["abc", "-1", "1.5", "", "²"])
    async def test_bad_content_length_header(self, client, fake_service, declared):
        fake_service.add_bucket("b1")
        with pytest.raises(InvalidArgument, match="content-length"):
            await client.create_bucket_object(b"x", "b1", "o1", headers={"Content-Length": declared})
        assert fake_service.requests == []

    async def test_colliding_metadata_keys(self, client, fake_service):
        fake_service.add_bucket("b1")
        with pytest.raises(InvalidArgument, match="collides"):
            await client.create_bucket_object(b"x", "b1", "o1", metadata={"Foo": "a", "foo": "b"})
        assert fake_service.requests == []

    async def test_failing_payload_leaves_no_object(self, client, fake_service):
        fake_service.add_bucket("b1")

        def source():
            yield b"partial"
            raise OSError("read error")

        with pytest.raises(PayloadStreamError) as exc_info:
            await client.create_bucket_object(source(), "b1", "o1")
        assert exc_info.value.bytes_sent == 7
        assert fake_service.buckets["b1"].objects == {}

    async def test_concurrent_calls(self, client, fake_service):
        fake_service.add_bucket("b1")
        await asyncio.gather(*[
            client.create_bucket_object(f"data-{i}".encode(), "b1", f"o{i}")
            for i in range(10)
        ])
        heads = await asyncio.gather(*[client.head_bucket_object("b1", f"o{i}") for i in range(10)])
        assert [head.content_length for head in heads] == [len(f"data-{i}") for i in range(10)]


class TestBucketsSupport:

    async def test_supported(self, client):
        assert await client.is_buckets_supported() is True

    async def test_not_supported(self, client, fake_service):
        fake_service.buckets_supported = False
        assert await client.is_buckets_supported() is False

    @pytest.mark.parametrize("status", [405, 501])
    async def test_other_unsupported_statuses(self, client, fake_service, status):
        fake_service.force_response("HEAD", httpx.Response(status, content=fake_service.stream(b"")))
        assert await client.is_buckets_supported() is False

    async def test_server_error_raised(self, client, fake_service):
        fake_service.force_response("HEAD", httpx.Response(500, content=fake_service.stream(b"")))
        with pytest.raises(HTTPStatusError) as exc_info:
            await client.is_buckets_supported()
        assert exc_info.value.status_code == 500


class TestClose:

    async def test_calls_after_close_fail(self, client, fake_service):
        await client.close()
        assert client.closed
        with pytest.raises(ClientClosedError):
            await client.create_bucket("b1")
        with pytest.raises(ClientClosedError):
            await client.create_bucket_object(b"x", "b1", "o1", headers={"m-a": "b"})
        with pytest.raises(ClientClosedError):
            await client.is_buckets_supported()
        with pytest.raises(ClientClosedError):
            client.list_buckets()
        assert fake_service.requests == []

    async def test_closed_error_wins_over_argument_errors(self, client):
        await client.close()
        with pytest.raises(ClientClosedError):
            await client.create_bucket("b1", headers={"x-bad": "a\nb"})
        with pytest.raises(ClientClosedError):
            await client.create_bucket_object(b"x", "b1", "o1", content_length=-1)
        with pytest.raises(ClientClosedError):
            await client.get_bucket_object("b1", "o1", headers={"": "x"})
        with pytest.raises(ClientClosedError):
            await client.put_bucket_object_metadata("b1", "o1", metadata={"": "x"})

    async def test_close_is_idempotent(self, client):
        await client.close()
        await client.close()
        assert client.closed

    async def test_listing_opened_after_close_fails(self, client, fake_service):
        stream = client.list_buckets()
        await client.close()
        with pytest.raises(ClientClosedError):
            await stream.collect()
        assert fake_service.requests == []

    async def test_injected_transport_left_open(self, settings, http_transport):
        client = MantaBucketsClient(settings, transport=http_transport)
        await client.close()
        assert not http_transport.client.is_closed
        await http_transport.aclose()

    async def test_owned_transport_closed(self, settings):
        client = MantaBucketsClient(settings)
        assert isinstance(client.transport, HttpTransport)
        async with client:
            pass
        assert client.transport.client.is_closed

    async def test_from_env(self):
        async with MantaBucketsClient.from_env() as client:
            assert client.settings == Settings(url="http://localhost:8080", user="alice", insecure=True)


class TestOperationCoverage:
    """Every Operation has exactly one public client method, and vice versa."""

    def test_operations_match_public_methods(self):
        public = {
            name for name, member in inspect.getmembers(MantaBucketsClient)
            if not name.startswith("_") and callable(member)
        }
        public -= {"close", "from_env"}
        assert public == {operation.value for operation in Operation}

import unittest

from fakes import FakeS3Client
from s3_tree.factory import ClientFactory, S3Config
from s3_tree.settings import AdapterSettings


class RecordingClientFactory:
    def __init__(self):
        self.calls = []

    def __call__(self, service_name, **kwargs):
        self.calls.append((service_name, kwargs))
        return FakeS3Client()


class ClientFactoryTests(unittest.TestCase):
    def setUp(self):
        self.boto = RecordingClientFactory()
        self.factory = ClientFactory(self.boto)

    def test_path_style_client(self):
        client = self.factory.get_or_create(
            S3Config("http://localhost:9000/photos/dir", access_key="a", secret_key="s", insecure=True)
        )

        self.assertFalse(client.virtual_style)
        self.assertEqual(("photos", "dir"), client.bucket_and_object())
        service, kwargs = self.boto.calls[0]
        self.assertEqual("s3", service)
        self.assertEqual("http://localhost:9000", kwargs["endpoint_url"])
        self.assertEqual(("a", "s"), (kwargs["aws_access_key_id"], kwargs["aws_secret_access_key"]))
        self.assertIsNone(kwargs["region_name"])
        self.assertFalse(kwargs["verify"])
        self.assertEqual("s3v4", kwargs["config"].signature_version)
        self.assertEqual({"addressing_style": "path"}, kwargs["config"].s3)
        self.assertEqual("pys3tree", kwargs["config"].user_agent_extra)

    def test_virtual_host_client_uses_service_endpoint(self):
        client = self.factory.get_or_create(
            S3Config("https://photos.s3.amazonaws.com/2024/cat.jpg", signature="S3v2", region="eu-west-1")
        )

        self.assertTrue(client.virtual_style)
        self.assertEqual(("photos", "2024/cat.jpg"), client.bucket_and_object())
        self.assertEqual("photos.s3.amazonaws.com", client.url.host)
        _, kwargs = self.boto.calls[0]
        self.assertEqual("https://s3.amazonaws.com", kwargs["endpoint_url"])
        self.assertEqual("eu-west-1", kwargs["region_name"])
        self.assertEqual("s3", kwargs["config"].signature_version)
        self.assertEqual({"addressing_style": "virtual"}, kwargs["config"].s3)

    def test_sdk_clients_are_cached_by_host_and_credentials(self):
        first = self.factory.get_or_create(S3Config("http://localhost:9000/a", access_key="k", secret_key="s"))
        second = self.factory.get_or_create(S3Config("http://localhost:9000/b", access_key="k", secret_key="s"))
        other = self.factory.get_or_create(S3Config("http://localhost:9000/a", access_key="k2", secret_key="s"))

        self.assertEqual(2, len(self.boto.calls))
        self.assertIsNot(first, second)
        self.assertEqual(("b", ""), second.bucket_and_object())
        self.assertEqual("k2", self.boto.calls[1][1]["aws_access_key_id"])
        self.assertIsNot(first._backend.client, other._backend.client)
        self.assertIs(first._backend.client, second._backend.client)

    def test_client_settings_are_part_of_the_cache_key(self):
        base = dict(host_url="http://minio.local:9000/photos", access_key="k", secret_key="s", region="us-east-1")
        variants = [
            dict(base),
            dict(base, host_url="https://minio.local:9000/photos"),
            dict(base, region="eu-west-1"),
            dict(base, signature="S3v2"),
            dict(base, insecure=True),
        ]

        clients = [self.factory.get_or_create(S3Config(**variant)) for variant in variants]

        self.assertEqual(len(variants), len(self.boto.calls))
        _, secure = self.boto.calls[1]
        self.assertEqual("https://minio.local:9000", secure["endpoint_url"])
        self.assertEqual("https://minio.local:9000", clients[1]._backend._endpoint_url)
        self.assertEqual("eu-west-1", self.boto.calls[2][1]["region_name"])

        self.factory.get_or_create(S3Config(**dict(base, host_url="http://minio.local:9000/videos")))
        self.assertEqual(len(variants), len(self.boto.calls))

    def test_addressing_style_is_part_of_the_cache_key(self):
        self.factory.get_or_create(S3Config("https://s3.amazonaws.com/photos"))
        self.factory.get_or_create(S3Config("https://photos.s3.amazonaws.com/"))

        self.assertEqual(
            [{"addressing_style": "path"}, {"addressing_style": "virtual"}],
            [kwargs["config"].s3 for _, kwargs in self.boto.calls],
        )

    def test_cache_key_separates_fields(self):
        self.assertNotEqual(
            ClientFactory.cache_key("host", "ab", "c"),
            ClientFactory.cache_key("host", "a", "bc"),
        )

    def test_app_version_in_user_agent(self):
        self.factory.get_or_create(S3Config("http://localhost:9000", app_name="mirror", app_version="1.2"))

        self.assertEqual("mirror/1.2", self.boto.calls[0][1]["config"].user_agent_extra)

    def test_settings_page_size_reaches_listing(self):
        boto = RecordingClientFactory()
        factory = ClientFactory(boto, settings=AdapterSettings(page_size=2))
        client = factory.get_or_create(S3Config("http://localhost:9000/photos/"))
        fake = client._backend.client
        for key in ("a", "b", "c"):
            fake.add_object("photos", key)

        list(client.list(recursive=True))

        self.assertEqual(2, fake.calls_for("list_objects")[0]["MaxKeys"])


if __name__ == "__main__":
    unittest.main()

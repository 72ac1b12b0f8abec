import unittest

from blob_browser.credentials import Credential, SecretKey
from blob_browser.errors import CredentialError
from blob_browser.signing import CanonicalRequestBuilder, RequestSigner, SignableRequest, sign

ACCOUNT = "myaccount"
KEY = "c2VjcmV0LWtleQ=="  # base64 of "secret-key"
DATE = "Mon, 19 Oct 2026 12:00:00 GMT"


def list_request(headers=None):
    return SignableRequest(
        method="GET",
        resource_path="/documents",
        query_params=[("restype", "container"), ("comp", "list")],
        headers=headers or {"x-ms-date": DATE, "x-ms-version": "2021-12-02"},
    )


class CanonicalRequestBuilderTests(unittest.TestCase):
    def setUp(self):
        self.builder = CanonicalRequestBuilder(ACCOUNT)

    def test_list_request_matches_expected_layout(self):
        canonical = self.builder.canonicalize(list_request())

        expected = "\n".join(
            ["GET"]
            + [""] * 11
            + [
                f"x-ms-date:{DATE}\nx-ms-version:2021-12-02",
                "/myaccount/documents\ncomp:list\nrestype:container",
            ]
        )
        self.assertEqual(expected, canonical)

    def test_is_deterministic(self):
        first = self.builder.canonicalize(list_request())
        second = self.builder.canonicalize(list_request())

        self.assertEqual(first, second)

    def test_header_order_does_not_matter(self):
        forward = {
            "x-ms-version": "2021-12-02",
            "X-MS-Date": DATE,
            "x-ms-blob-type": "BlockBlob",
            "Content-Type": "text/plain",
        }
        backward = dict(reversed(list(forward.items())))
        request_a = SignableRequest("PUT", "/documents/a.txt", headers=forward, body_length=5)
        request_b = SignableRequest("PUT", "/documents/a.txt", headers=backward, body_length=5)

        self.assertEqual(self.builder.canonicalize(request_a), self.builder.canonicalize(request_b))

    def test_vendor_headers_are_lowercased_and_sorted(self):
        headers = {"X-Ms-Version": "v", "x-ms-blob-type": "BlockBlob", "X-MS-DATE": "d", "Other": "x"}

        block = self.builder.canonical_headers(headers)

        self.assertEqual("x-ms-blob-type:BlockBlob\nx-ms-date:d\nx-ms-version:v", block)

    def test_empty_body_renders_empty_length(self):
        for method in ("GET", "DELETE", "HEAD"):
            with self.subTest(method=method):
                request = SignableRequest(method, "/documents/a.txt", headers={"x-ms-date": DATE})
                fields = self.builder.canonicalize(request).split("\n")
                self.assertEqual("", fields[3])
                self.assertNotIn("0", fields[:12])

    def test_body_length_and_content_type_fill_their_slots(self):
        request = SignableRequest(
            "PUT",
            "/documents/a.txt",
            headers={"content-type": "text/plain", "Content-Encoding": "gzip"},
            body_length=42,
        )

        fields = self.builder.canonicalize(request).split("\n")

        self.assertEqual("PUT", fields[0])
        self.assertEqual("gzip", fields[1])
        self.assertEqual("42", fields[3])
        self.assertEqual("text/plain", fields[5])

    def test_query_params_sorted_and_lowercased(self):
        resource = self.builder.canonical_resource(
            "/documents",
            [("restype", "container"), ("Prefix", "docs/"), ("comp", "list")],
        )

        self.assertEqual("/myaccount/documents\ncomp:list\nprefix:docs/\nrestype:container", resource)

    def test_repeated_query_keys_are_merged(self):
        resource = self.builder.canonical_resource("/c", [("include", "metadata"), ("include", "copy")])

        self.assertEqual("/myaccount/c\ninclude:copy,metadata", resource)

    def test_rejects_unknown_method_and_negative_length(self):
        with self.assertRaises(ValueError):
            SignableRequest("POST", "/documents")
        with self.assertRaises(ValueError):
            SignableRequest("PUT", "/documents", body_length=-1)


class RequestSignerTests(unittest.TestCase):
    def setUp(self):
        self.credential = Credential(account_name=ACCOUNT, secret=SecretKey(KEY))
        self.signer = RequestSigner(self.credential)

    def test_known_signature(self):
        canonical = self.signer.builder.canonicalize(list_request())

        self.assertEqual(
            "SharedKey myaccount:xNheqluA3yUCzb7RyUQxVPRIchExUo55ZfHtz35TAEQ=",
            self.signer.sign(canonical),
        )

    def test_sign_is_deterministic(self):
        self.assertEqual(self.signer.sign("payload"), self.signer.sign("payload"))
        self.assertEqual(self.signer.sign("payload"), sign("payload", self.credential))

    def test_sign_request_attaches_authorization(self):
        request = list_request()

        headers = self.signer.sign_request(request)

        self.assertTrue(headers["Authorization"].startswith("SharedKey myaccount:"))
        self.assertEqual(DATE, headers["x-ms-date"])
        self.assertNotIn("Authorization", request.headers)

    def test_undecodable_key_raises_credential_error(self):
        with self.assertRaises(CredentialError):
            RequestSigner(Credential(account_name=ACCOUNT, secret=SecretKey("not base64!")))


if __name__ == "__main__":
    unittest.main()

# pinata.py - Pin uploaded files to IPFS through Pinata (V3 JWT or legacy V2 keys)
import json
import time

import requests

from errors import PinataError

PINATA_V3_UPLOAD_URL = "https://uploads.pinata.cloud/v3/files"
PINATA_V2_UPLOAD_URL = "https://api.pinata.cloud/pinning/pinFileToIPFS"
PINATA_TEST_AUTH_URL = "https://api.pinata.cloud/data/testAuthentication"


class PinataClient:
    def __init__(self, config, session=None, timeout=60):
        self.jwt = config.pinata_jwt
        self.api_key = config.pinata_api_key
        self.secret_api_key = config.pinata_secret_api_key
        self.version = config.pinata_version
        self.http = session or requests
        self.timeout = timeout

    @property
    def enabled(self):
        return self.version is not None

    def _headers(self):
        if self.version == "v3":
            return {'Authorization': f'Bearer {self.jwt}'}
        return {
            'pinata_api_key': self.api_key,
            'pinata_secret_api_key': self.secret_api_key
        }

    def upload(self, file_bytes, filename=None, content_type=None):
        """Upload file to Pinata IPFS using V3 or V2 API, returns the CID"""
        if not self.enabled:
            raise PinataError("Pinata not configured")

        if self.version == "v3":
            return self.upload_v3(file_bytes, filename, content_type)
        else:
            return self.upload_v2(file_bytes, filename, content_type)

    def upload_v3(self, file_bytes, filename=None, content_type=None):
        files = {
            'file': (filename or 'shared_file', file_bytes, content_type or 'application/octet-stream')
        }
        # Files must be on the public network to be reachable through gateways
        data = {
            'network': 'public',
            'name': filename or 'shared_file',
            'keyvalues': json.dumps({
                'type': 'shared_file',
                'uploaded_at': str(int(time.time()))
            })
        }
        try:
            print(f"Uploading {len(file_bytes)} bytes to Pinata V3 API (public network)...")
            response = self.http.post(PINATA_V3_UPLOAD_URL, files=files, data=data,
                                      headers=self._headers(), timeout=self.timeout)
            print(f"Pinata V3 response status: {response.status_code}")
            response.raise_for_status()
            cid = response.json()['data']['cid']
            print(f"File uploaded to public IPFS with CID: {cid}")
            return cid
        except requests.exceptions.RequestException as e:
            status = e.response.status_code if e.response is not None else None
            if e.response is not None:
                print(f"Response text: {e.response.text}")
            raise PinataError(f"Pinata V3 upload failed: {e}", status_code=status) from e
        except (KeyError, ValueError) as e:
            raise PinataError(f"Unexpected Pinata V3 response: {e}") from e

    def upload_v2(self, file_bytes, filename=None, content_type=None):
        """Upload using the legacy V2 key/secret API"""
        files = {
            'file': (filename or 'shared_file', file_bytes, content_type or 'application/octet-stream')
        }
        data = {
            'pinataOptions': json.dumps({'cidVersion': 1})
        }
        try:
            print(f"Uploading {len(file_bytes)} bytes to Pinata V2 API...")
            response = self.http.post(PINATA_V2_UPLOAD_URL, files=files, data=data,
                                      headers=self._headers(), timeout=self.timeout)
            if response.status_code != 200:
                print(f"Pinata V2 response text: {response.text}")
            response.raise_for_status()
            cid = response.json()['IpfsHash']
            print(f"Successfully uploaded to Pinata V2: {cid}")
            return cid
        except requests.exceptions.RequestException as e:
            status = e.response.status_code if e.response is not None else None
            raise PinataError(f"Pinata V2 upload failed: {e}", status_code=status) from e
        except (KeyError, ValueError) as e:
            raise PinataError(f"Unexpected Pinata V2 response: {e}") from e

    def test_authentication(self):
        """Return True when Pinata accepts the configured credentials"""
        if not self.enabled:
            return False
        try:
            response = self.http.get(PINATA_TEST_AUTH_URL, headers=self._headers(), timeout=self.timeout)
            return response.ok
        except requests.exceptions.RequestException as e:
            print(f"Pinata connection test failed: {e}")
            return False

"""
IPFS service for pinning token images and metadata
"""

import asyncio
import json
import logging
from dataclasses import replace
from typing import Dict, Optional
from urllib.parse import quote, unquote

import aiohttp
import requests

from launcher.config import DEFAULT_PINATA_GATEWAY, LauncherConfig
from launcher.errors import MetadataPublishError
from launcher.models import MetadataRecord

PINATA_JSON_URL = "https://api.pinata.cloud/pinning/pinJSONToIPFS"
PINATA_FILE_URL = "https://api.pinata.cloud/pinning/pinFileToIPFS"
PINATA_AUTH_URL = "https://api.pinata.cloud/data/testAuthentication"

DATA_URI_PREFIX = "data:application/json,"
MAX_ONCHAIN_URI_LENGTH = 200  # Metaplex limit

# Characters encodeURIComponent leaves alone
_URI_COMPONENT_SAFE = "-_.!~*'()"


class IPFSService:
    """Service for handling IPFS uploads, with an inline data URI fallback"""

    def __init__(self, pinata_jwt: Optional[str] = None, pinata_api_key: Optional[str] = None,
                 pinata_secret_key: Optional[str] = None, gateway_url: str = DEFAULT_PINATA_GATEWAY,
                 timeout: float = 120.0):
        self.pinata_jwt = pinata_jwt
        self.pinata_api_key = pinata_api_key
        self.pinata_secret_key = pinata_secret_key
        self.gateway_url = gateway_url.rstrip('/')
        self.timeout = timeout
        self.logger = logging.getLogger('token_launcher')

    @classmethod
    def from_config(cls, config: LauncherConfig) -> 'IPFSService':
        return cls(
            pinata_jwt=config.pinata_jwt,
            pinata_api_key=config.pinata_api_key,
            pinata_secret_key=config.pinata_secret_key,
            gateway_url=config.pinata_gateway_url,
            timeout=config.publish_timeout,
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.pinata_jwt or (self.pinata_api_key and self.pinata_secret_key))

    def _auth_headers(self) -> Dict[str, str]:
        if self.pinata_jwt:
            return {"Authorization": f"Bearer {self.pinata_jwt}"}
        return {
            "pinata_api_key": self.pinata_api_key or '',
            "pinata_secret_api_key": self.pinata_secret_key or '',
        }

    def _gateway_uri(self, ipfs_hash: str) -> str:
        return f"{self.gateway_url}/{ipfs_hash}"

    async def _pin_json(self, metadata: Dict) -> str:
        """POST metadata to Pinata and return its IpfsHash"""
        symbol = metadata.get('symbol', '')
        payload = {
            "pinataContent": metadata,
            "pinataMetadata": {
                "name": f"{symbol}_metadata.json",
                "keyvalues": {
                    "tokenSymbol": symbol,
                    "tokenName": metadata.get('name', ''),
                    "uploadType": "metadata",
                },
            },
            "pinataOptions": {"cidVersion": 0},
        }
        try:
            timeout = aiohttp.ClientTimeout(total=self.timeout)
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.post(PINATA_JSON_URL, json=payload, headers=self._auth_headers()) as response:
                    if response.status != 200:
                        text = await response.text()
                        raise MetadataPublishError(f"Pinata upload failed: HTTP {response.status} - {text}")
                    result = await response.json()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise MetadataPublishError(f"Pinata upload failed: {e}") from e
        except ValueError as e:
            # 200 with a body that is not JSON
            raise MetadataPublishError(f"Pinata returned an unreadable response: {e}") from e

        ipfs_hash = result.get('IpfsHash') if isinstance(result, dict) else None
        if not ipfs_hash:
            raise MetadataPublishError("Pinata response did not include IpfsHash")
        return ipfs_hash

    async def _pin_file(self, data: bytes, file_name: str, content_type: str) -> str:
        """POST a file to Pinata as multipart form data and return its IpfsHash"""
        form = aiohttp.FormData()
        form.add_field('file', data, filename=file_name, content_type=content_type)
        form.add_field('pinataMetadata', json.dumps({
            "name": file_name,
            "keyvalues": {"uploadType": "image", "fileName": file_name},
        }))
        form.add_field('pinataOptions', json.dumps({"cidVersion": 0}))
        try:
            timeout = aiohttp.ClientTimeout(total=self.timeout)
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.post(PINATA_FILE_URL, data=form, headers=self._auth_headers()) as response:
                    if response.status != 200:
                        text = await response.text()
                        raise MetadataPublishError(f"Pinata image upload failed: HTTP {response.status} - {text}")
                    result = await response.json()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise MetadataPublishError(f"Pinata image upload failed: {e}") from e
        except ValueError as e:
            raise MetadataPublishError(f"Pinata returned an unreadable image response: {e}") from e

        ipfs_hash = result.get('IpfsHash') if isinstance(result, dict) else None
        if not ipfs_hash:
            raise MetadataPublishError("Pinata response did not include IpfsHash")
        return ipfs_hash

    async def upload_image(self, image_data: bytes, file_name: str,
                           content_type: str = 'image/png') -> Optional[str]:
        """Pin image bytes and return a gateway URL, or None if pinning is unavailable"""
        if not self.is_configured:
            self.logger.warning("No IPFS service configured for image upload")
            return None
        try:
            self.logger.info(f"Uploading image {file_name} to Pinata IPFS ({len(image_data)} bytes)")
            ipfs_hash = await self._pin_file(image_data, file_name, content_type)
            image_url = self._gateway_uri(ipfs_hash)
            self.logger.info(f"Image uploaded to IPFS: {image_url}")
            return image_url
        except MetadataPublishError as e:
            self.logger.error(f"Error uploading image to IPFS: {e}")
            return None

    async def upload_json(self, metadata: Dict) -> str:
        """Pin metadata JSON. Never raises: falls back to an inline data URI."""
        if not self.is_configured:
            self.logger.warning("Pinata not configured, using data URI")
            return self.create_data_uri(metadata)
        try:
            self.logger.info("Uploading JSON metadata to Pinata IPFS")
            ipfs_hash = await self._pin_json(metadata)
            uri = self._gateway_uri(ipfs_hash)
            self.logger.info(f"Metadata uploaded to IPFS: {uri}")
            return uri
        except MetadataPublishError as e:
            self.logger.error(f"Error uploading metadata to IPFS: {e}")
            self.logger.info("Falling back to data URI")
            return self.create_data_uri(metadata)

    async def publish(self, record: MetadataRecord, image_bytes: Optional[bytes] = None,
                      image_name: str = 'logo.png', content_type: str = 'image/png') -> MetadataRecord:
        """Pin the image (if any) and then the document; returns the record with its URI set"""
        image = record.image
        if image_bytes and not image:
            image = await self.upload_image(image_bytes, image_name, content_type) or ''

        document = replace(record, image=image)
        uri = await self.upload_json(document.to_json())
        return replace(document, uri=uri, is_inline=uri.startswith(DATA_URI_PREFIX))

    def create_data_uri(self, metadata: Dict) -> str:
        """Self-contained locator with just name, symbol and description"""
        # Images are left out to stay inside transaction size limits
        minimal = {
            "name": metadata.get('name', ''),
            "symbol": metadata.get('symbol', ''),
            "description": metadata.get('description', ''),
        }
        uri = self._encode_data_uri(minimal)

        # The metadata account caps the URI, so shorten the description until it fits
        description = minimal["description"]
        while len(uri) > MAX_ONCHAIN_URI_LENGTH and description:
            description = description[:-1]
            uri = self._encode_data_uri(dict(minimal, description=description.rstrip()))

        if len(uri) > MAX_ONCHAIN_URI_LENGTH:
            self.logger.warning(f"Inline metadata URI is {len(uri)} chars (on-chain limit {MAX_ONCHAIN_URI_LENGTH})")
        elif description != minimal["description"]:
            self.logger.warning("Description shortened to fit the inline metadata URI")
        return uri

    @staticmethod
    def _encode_data_uri(document: Dict) -> str:
        encoded = quote(json.dumps(document, separators=(',', ':'), ensure_ascii=False), safe=_URI_COMPONENT_SAFE)
        return f"{DATA_URI_PREFIX}{encoded}"

    @staticmethod
    def decode_data_uri(uri: str) -> Dict:
        """Inverse of create_data_uri"""
        if not uri.startswith(DATA_URI_PREFIX):
            raise ValueError("Not an inline JSON data URI")
        return json.loads(unquote(uri[len(DATA_URI_PREFIX):]))

    def test_connection(self) -> bool:
        """Check Pinata credentials"""
        if not self.is_configured:
            self.logger.warning("Pinata credentials not configured")
            return False
        try:
            response = requests.get(PINATA_AUTH_URL, headers=self._auth_headers(), timeout=10)
            if response.status_code == 200:
                self.logger.info("Pinata connection test successful")
                return True
            self.logger.error(f"Pinata connection test failed: {response.status_code} {response.text}")
            return False
        except requests.exceptions.RequestException as e:
            self.logger.error(f"Pinata connection test error: {e}")
            return False

"""
Tests for launch request validation and request parsing
"""

import base64

import pytest
from solders.keypair import Keypair

from launcher.errors import ValidationError
from launcher.models import ExecuteRequest, LaunchRequest
from launcher.validation import MAX_IMAGE_BYTES, detect_image_type, validate_launch_request

WALLET = str(Keypair().pubkey())
PNG_BYTES = b'\x89PNG\r\n\x1a\n' + b'\x00' * 16


def make_request(**overrides):
    fields = dict(recipient=WALLET, name='Test Token', symbol='TEST')
    fields.update(overrides)
    return LaunchRequest(**fields)


def test_valid_request():
    validate_launch_request(make_request(
        description='A token',
        image_url='https://example.com/logo.png',
        website='https://example.com',
        twitter='https://x.com/example',
    ))


@pytest.mark.parametrize('overrides, message', [
    (dict(name=''), 'name is required'),
    (dict(name='   '), 'name is required'),
    (dict(name='x' * 33), 'name must be 32'),
    (dict(name='é' * 17), 'name must be 32'),
    (dict(symbol=''), 'symbol is required'),
    (dict(symbol='TOOLONGSYMB'), 'symbol must be 10'),
    (dict(recipient=''), 'wallet address is required'),
    (dict(recipient='not-a-wallet'), 'Invalid user wallet address'),
    (dict(description='x' * 201), 'Description must be 200'),
    (dict(image_url='ftp://example.com/logo.png'), 'Invalid image URL'),
    (dict(image_url='ipfs://'), 'Invalid image URL'),
    (dict(website='example.com'), 'Website link'),
    (dict(discord='javascript:alert(1)'), 'Discord link'),
])
def test_invalid_requests(overrides, message):
    with pytest.raises(ValidationError, match=message) as excinfo:
        validate_launch_request(make_request(**overrides))
    assert excinfo.value.step == 'validate'


def test_limits_are_inclusive():
    validate_launch_request(make_request(name='x' * 32, symbol='X' * 10, description='d' * 200))


@pytest.mark.parametrize('image_url', [
    'https://example.com/logo.png',
    'ipfs://QmHash',
    'data:image/png;base64,iVBORw0KGgo=',
])
def test_accepted_image_references(image_url):
    validate_launch_request(make_request(image_url=image_url))


def test_image_upload_checks():
    validate_launch_request(make_request(image_bytes=PNG_BYTES))

    with pytest.raises(ValidationError, match='Unsupported image format'):
        validate_launch_request(make_request(image_bytes=b'<svg></svg>'))

    with pytest.raises(ValidationError, match='5MB'):
        validate_launch_request(make_request(image_bytes=PNG_BYTES + b'\x00' * MAX_IMAGE_BYTES))


def test_uploaded_bytes_ignored_when_image_url_given():
    validate_launch_request(make_request(image_url='https://example.com/logo.png', image_bytes=b'junk'))


def test_detect_image_type():
    assert detect_image_type(PNG_BYTES) == ('image/png', 'png')
    assert detect_image_type(b'\xff\xd8\xff\xe0rest') == ('image/jpeg', 'jpg')
    assert detect_image_type(b'GIF89a...') == ('image/gif', 'gif')
    assert detect_image_type(b'BM...') is None


def test_request_from_dict_camel_case():
    request = LaunchRequest.from_dict({
        'userWallet': f' {WALLET} ',
        'name': 'Test Token',
        'symbol': 'TEST',
        'imageUrl': 'https://example.com/logo.png',
        'website': 'https://example.com',
        'twitter': '',
    })

    assert request.recipient == WALLET
    assert request.image_url == 'https://example.com/logo.png'
    assert request.website == 'https://example.com'
    assert request.twitter is None


def test_request_from_dict_image_upload():
    encoded = base64.b64encode(PNG_BYTES).decode('ascii')

    raw = LaunchRequest.from_dict({'recipient': WALLET, 'name': 'A', 'symbol': 'A', 'imageUpload': encoded})
    prefixed = LaunchRequest.from_dict({
        'recipient': WALLET, 'name': 'A', 'symbol': 'A', 'image_upload': f'data:image/png;base64,{encoded}',
    })

    assert raw.image_bytes == PNG_BYTES
    assert prefixed.image_bytes == PNG_BYTES
    assert 'image_bytes' not in repr(raw)


def test_request_from_dict_bad_image_upload():
    with pytest.raises(ValidationError, match='base64'):
        LaunchRequest.from_dict({'recipient': WALLET, 'name': 'A', 'symbol': 'A', 'imageUpload': '%%%'})


def test_execute_request_from_dict():
    request = ExecuteRequest.from_dict({'sessionId': 'abc', 'signedTransaction': 'AQID'})
    assert request == ExecuteRequest('abc', 'AQID')

    with pytest.raises(ValidationError):
        ExecuteRequest.from_dict({'signedTransaction': 'AQID'})
    with pytest.raises(ValidationError):
        ExecuteRequest.from_dict({'session_id': 'abc'})


def test_name_and_symbol_limits_are_utf8_bytes():
    # 16 two-byte characters fit exactly; one more does not
    validate_launch_request(make_request(name='é' * 16, symbol='é' * 5))

    with pytest.raises(ValidationError, match=r'32 bytes \(UTF-8\)'):
        validate_launch_request(make_request(name='é' * 17))
    with pytest.raises(ValidationError, match=r'10 bytes \(UTF-8\)'):
        validate_launch_request(make_request(symbol='é' * 6))

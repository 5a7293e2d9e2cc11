import pytest

from routing.polyline import MalformedPolylineError, decode, decode_lenient
from conftest import encode_polyline


def test_decode_known_google_example():
    """
    The worked example from Google's polyline documentation.
    """
    points = decode("_p~iF~ps|U_ulLnnqC_mqNvxq`@")

    expected = [(38.5, -120.2), (40.7, -120.95), (43.252, -126.453)]
    assert len(points) == 3
    for point, (lat, lon) in zip(points, expected):
        assert point.latitude == pytest.approx(lat, abs=1e-5)
        assert point.longitude == pytest.approx(lon, abs=1e-5)


@pytest.mark.parametrize("sequence", [
    [(0.0, 0.0), (0.00001, -0.00001)],
    [(52.517037, 13.38886), (52.529407, 13.397634), (52.525, 13.41)],
    [(-33.8688, 151.2093), (-33.87, 151.21), (-33.9, 151.3), (-34.0, 151.0)],
    [(89.99999, 179.99999), (-89.99999, -179.99999)],
])
def test_decode_inverts_encoding(sequence):
    points = decode(encode_polyline(sequence))

    assert len(points) == len(sequence)
    for point, (lat, lon) in zip(points, sequence):
        assert point.latitude == pytest.approx(lat, abs=1e-5)
        assert point.longitude == pytest.approx(lon, abs=1e-5)


def test_empty_string_decodes_to_no_points():
    assert decode("") == []


def test_truncated_value_is_malformed():
    encoded = encode_polyline([(38.5, -120.2), (40.7, -120.95)])

    # the last character of a value never has the continuation bit set;
    # dropping it leaves the stream mid-value
    with pytest.raises(MalformedPolylineError):
        decode(encoded[:-1])


def test_latitude_without_longitude_is_malformed():
    # "_p~iF" is a complete latitude value on its own
    with pytest.raises(MalformedPolylineError):
        decode("_p~iF")


def test_character_outside_alphabet_is_malformed():
    with pytest.raises(MalformedPolylineError):
        decode("_p~iF ps|U")


def test_out_of_range_coordinate_is_malformed():
    # 95 degrees latitude cannot be a real place
    encoded = encode_polyline([(95.0, 10.0)])

    with pytest.raises(MalformedPolylineError):
        decode(encoded)


def test_non_string_is_malformed():
    with pytest.raises(MalformedPolylineError):
        decode(None)


def test_lenient_decode_keeps_points_before_fault():
    encoded = encode_polyline([(38.5, -120.2), (40.7, -120.95)])

    points = decode_lenient(encoded + "_p~iF")

    assert len(points) == 2
    assert points[1].latitude == pytest.approx(40.7, abs=1e-5)

from pathlib import Path

import pytest

from route_impact.data.config import MatcherConfig

# Sample network north of Newcastle, clear of every default override zone:
#   route 21 runs north-south along lng -1.6000 (direction 0) and -1.6003 (direction 1)
#   route 10 runs east-west along lat 55.0000 between lng -1.59 and -1.56
#   route 99 has no shape and is only reachable through its stops
ROUTES_TXT = (
    "route_id,agency_id,route_short_name,route_long_name,route_type,route_color\n"
    "R21,GNE,21,Newcastle - Durham,3,E30613\n"
    "R10,GNE,10,Newcastle - Heaton,3,0072BC\n"
    "R99,GNE,99,Heaton Circular,3,\n"
)

STOPS_TXT = (
    "stop_id,stop_code,stop_name,stop_lat,stop_lon\n"
    "S1,41001,Gosforth High Street,55.0000,-1.6000\n"
    "S2,41002,Regent Centre,55.0100,-1.6000\n"
    "S3,41003,Heaton Road,55.0000,-1.5700\n"
    "S4,91001,Victoria Coach Station,51.4950,-0.1470\n"
    "S5,41005,Broken Stop,abc,-1.6000\n"
)

TRIPS_TXT = (
    "route_id,service_id,trip_id,trip_headsign,direction_id,shape_id\n"
    "R21,WK,T1,Durham,0,SH21A\n"
    "R21,WK,T2,Newcastle,1,SH21B\n"
    "R10,WK,T3,Heaton,0,SH10\n"
    "R99,WK,T4,Heaton Circular,0,\n"
    "R404,WK,T5,Nowhere,0,SH21A\n"
)

SHAPES_TXT = (
    "shape_id,shape_pt_lat,shape_pt_lon,shape_pt_sequence\n"
    "SH21A,54.9900,-1.6000,1\n"
    "SH21A,55.0000,-1.6000,2\n"
    "SH21A,55.0200,-1.6000,3\n"
    "SH21B,55.0200,-1.6003,1\n"
    "SH21B,55.0000,-1.6003,2\n"
    "SH21B,54.9900,-1.6003,3\n"
    "SH10,55.0000,-1.5900,1\n"
    "SH10,55.0000,-1.5600,2\n"
)

STOP_TIMES_TXT = (
    "trip_id,arrival_time,departure_time,stop_id,stop_sequence\n"
    "T1,08:00:00,08:00:00,S1,1\n"
    "T1,08:05:00,08:05:00,S2,2\n"
    "T3,09:00:00,09:00:00,S3,1\n"
    "T4,10:00:00,10:00:00,S3,1\n"
    "T4,10:10:00,10:10:00,S1,2\n"
)


def write_feed(feed_dir: Path, shapes: bool = True, stop_times: bool = True) -> Path:
    """Write the sample feed into a directory."""
    feed_dir.mkdir(parents=True, exist_ok=True)
    (feed_dir / "routes.txt").write_text(ROUTES_TXT)
    (feed_dir / "stops.txt").write_text(STOPS_TXT)
    (feed_dir / "trips.txt").write_text(TRIPS_TXT)
    if shapes:
        (feed_dir / "shapes.txt").write_text(SHAPES_TXT)
    if stop_times:
        (feed_dir / "stop_times.txt").write_text(STOP_TIMES_TXT)
    return feed_dir


@pytest.fixture
def feed_dir(tmp_path: Path) -> Path:
    """Create a sample feed directory with every consumed file."""
    return write_feed(tmp_path / "gtfs")


@pytest.fixture
def feed_dir_without_shapes(tmp_path: Path) -> Path:
    """Create a sample feed directory with no shapes.txt."""
    return write_feed(tmp_path / "gtfs_no_shapes", shapes=False)


@pytest.fixture
def config(feed_dir: Path) -> MatcherConfig:
    """Matcher configuration pointing at the sample feed."""
    return MatcherConfig(feed_source=str(feed_dir))

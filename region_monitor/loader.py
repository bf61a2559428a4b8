
# Region ingestion: turns raw region/range records into validated Region objects.

# This is the only place raw input is trusted to be wrong. Every record is
# checked here (name, coordinates, every range) and anything malformed raises
# DataLoadError naming the offending entry. The rest of the package only
# ever sees frozen, validated Region/AddressRange values.

# Two sources are supported:
#   - load_regions(records): [{name, coordinates: [lon, lat], ranges: [{start, end}]}]
#   - load_regions_csv(path): startIP,endIP,city,longitude,latitude[,startIPNum,endIPNum]
#     rows grouped by city; every row is validated, the first row of a city
#     fixes its coordinates

import csv
import logging
import math
from pathlib import Path
from typing import Any, Iterable, Mapping

from region_monitor.errors import DataLoadError
from region_monitor.models import AddressRange, Region

log = logging.getLogger(__name__)

CSV_REQUIRED_COLUMNS = ("startIP", "endIP", "city", "longitude", "latitude")


def parse_coordinates(value: Any, where: str) -> tuple[float, float]:
    """[longitude, latitude] -> (lon, lat), both finite and on the globe."""
    try:
        lon, lat = value
        lon, lat = float(lon), float(lat)
    except (TypeError, ValueError):
        raise DataLoadError(f"{where}: coordinates must be [longitude, latitude], got {value!r}") from None
    if not (math.isfinite(lon) and math.isfinite(lat)):
        raise DataLoadError(f"{where}: coordinates must be finite, got {value!r}")
    if not (-180.0 <= lon <= 180.0 and -90.0 <= lat <= 90.0):
        raise DataLoadError(f"{where}: coordinates out of range, got {value!r}")
    return lon, lat


def parse_range(start: Any, end: Any, where: str) -> AddressRange:
    try:
        return AddressRange.from_strings(start, end)
    except (TypeError, ValueError) as exc:
        raise DataLoadError(f"{where}: bad range {start!r}-{end!r}: {exc}") from None


def _parse_name(value: Any, where: str) -> str:
    name = str(value).strip() if value is not None else ""
    if not name:
        raise DataLoadError(f"{where}: region name is missing")
    return name


def load_regions(records: Iterable[Mapping[str, Any]]) -> list[Region]:
    """
    Validate a list of region records.

    Region names are unique keys; a repeated name is an error rather than a
    silent merge. Range order is preserved because the sampler relies on it.
    """
    regions: list[Region] = []
    seen: set[str] = set()

    for i, record in enumerate(records):
        where = f"region #{i}"
        if not isinstance(record, Mapping):
            raise DataLoadError(f"{where}: expected an object, got {type(record).__name__}")

        name = _parse_name(record.get("name"), where)
        where = f"region {name!r}"
        if name in seen:
            raise DataLoadError(f"{where}: duplicate region name")
        seen.add(name)

        coordinates = parse_coordinates(record.get("coordinates"), where)

        raw_ranges = record.get("ranges", [])
        if not isinstance(raw_ranges, (list, tuple)):
            raise DataLoadError(f"{where}: ranges must be a list")
        ranges = []
        for j, raw in enumerate(raw_ranges):
            if not isinstance(raw, Mapping):
                raise DataLoadError(f"{where} range #{j}: expected an object with start/end")
            ranges.append(parse_range(raw.get("start"), raw.get("end"), f"{where} range #{j}"))

        regions.append(Region(name=name, coordinates=coordinates, ranges=tuple(ranges)))

    log.info("Loaded %d region(s) with %d range(s)", len(regions), sum(len(r.ranges) for r in regions))
    return regions


def load_regions_csv(path: str | Path) -> list[Region]:
    """
    Read a monitoring-ranges CSV and group its rows into regions by city.

    The optional startIPNum/endIPNum columns are cross-checked against the
    dotted-quad columns when present.
    """
    path = Path(path)
    try:
        with open(path, "r", encoding="utf-8", newline="") as f:
            reader = csv.DictReader(f)
            header = reader.fieldnames or []
            missing = [c for c in CSV_REQUIRED_COLUMNS if c not in header]
            if missing:
                raise DataLoadError(f"{path}: missing column(s) {', '.join(missing)}")
            rows = list(reader)
    except OSError as exc:
        raise DataLoadError(f"{path}: cannot read region data: {exc}") from exc
    except csv.Error as exc:
        raise DataLoadError(f"{path}: malformed CSV: {exc}") from exc

    by_city: dict[str, dict[str, Any]] = {}
    for line_no, row in enumerate(rows, start=2):   # header is line 1
        if not any((v or "").strip() for v in row.values() if isinstance(v, str)):
            continue
        where = f"{path}:{line_no}"
        city = _parse_name(row.get("city"), where)
        start, end = (row.get("startIP") or "").strip(), (row.get("endIP") or "").strip()

        rng = parse_range(start, end, where)
        _check_numeric_columns(row, rng, where)
        coordinates = parse_coordinates((row.get("longitude"), row.get("latitude")), where)

        if city not in by_city:
            by_city[city] = {"name": city, "coordinates": coordinates, "ranges": []}
        by_city[city]["ranges"].append({"start": rng.start, "end": rng.end})

    return load_regions(by_city.values())


def _check_numeric_columns(row: Mapping[str, Any], rng: AddressRange, where: str) -> None:
    for column, expected in (("startIPNum", rng.start), ("endIPNum", rng.end)):
        raw = (row.get(column) or "").strip()
        if not raw:
            continue
        try:
            value = int(raw)
        except ValueError:
            raise DataLoadError(f"{where}: {column} is not an integer: {raw!r}") from None
        if value != expected:
            raise DataLoadError(f"{where}: {column}={value} disagrees with dotted-quad address")

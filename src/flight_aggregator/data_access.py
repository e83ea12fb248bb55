import os

import pandas as pd

from flight_aggregator.core.models import SearchParams


DEFAULT_FARES_PATH = os.path.join("data", "sample_fares.csv")

REQUIRED_COLUMNS = [
    "offer_id",
    "origin",
    "destination",
    "departure_time",
    "arrival_time",
    "airline_code",
    "price",
]


def load_fare_rows(path: str, params: SearchParams) -> pd.DataFrame:
    """
    Load fares from a local CSV and keep the rows matching the request.

    Expected columns:
      offer_id, origin, destination, departure_time, arrival_time,
      airline_code, price
    Optional columns:
      airline, currency, stops, stop_airports ("ORD:55;DEN:40"),
      trip_type, return_date, booking_url
    Duration is always derived from the two timestamps. The departure date
    matched against the request is the local date written in the file, not
    the UTC date of the instant.
    """
    if not os.path.exists(path):
        # Missing file is an empty result; the caller decides what that means
        return pd.DataFrame()

    df = pd.read_csv(path, dtype={"offer_id": str, "stop_airports": str})

    missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
    if missing:
        raise ValueError(f"Fares file {path} is missing columns: {', '.join(missing)}")

    df["origin"] = df["origin"].str.upper().str.strip()
    df["destination"] = df["destination"].str.upper().str.strip()
    df["airline_code"] = df["airline_code"].str.upper().str.strip()

    df["local_departure_date"] = pd.to_datetime(
        df["departure_time"].astype(str).str.strip().str[:10]
    ).dt.date
    df["departure_time"] = pd.to_datetime(df["departure_time"], utc=True)
    df["arrival_time"] = pd.to_datetime(df["arrival_time"], utc=True)

    df = df[(df["origin"] == params.origin.upper()) & (df["destination"] == params.destination.upper())]
    df = df[df["local_departure_date"] == params.departure_date]

    if "trip_type" in df.columns:
        df = df[df["trip_type"].fillna(params.trip_type) == params.trip_type]

    if params.airlines:
        df = df[df["airline_code"].isin([a.upper() for a in params.airlines])]

    return df.reset_index(drop=True)

#!/usr/bin/env python3
"""
Elves Demo

Stores two elves with nested addresses in Redis Stack and queries them:
- exact match on a JSON-path indexed postal code
- geo radius on a cascaded home address location

Run against a local Redis Stack, or set DOCINDEX_BACKEND=memory to run
without a server.
"""

import asyncio
from typing import Optional

from pydantic import BaseModel

from docindex.config import print_configuration
from docindex.models import DistanceUnit, Eq, FieldKind, FieldSpec, GeoLoc, GeoRadius, SchemaRegistry, register_record_type
from docindex.storage import ConnectionProvider


class Address(BaseModel):
    street_address: str
    postal_code: str
    location: GeoLoc
    forwarding_address: Optional["Address"] = None


class Elf(BaseModel):
    id: Optional[str] = None
    first_name: str
    last_name: str
    age: int
    home_address: Optional[Address] = None
    work_address: Optional[Address] = None


registry = SchemaRegistry()

register_record_type(
    Address,
    [
        FieldSpec(name="street_address", kind=FieldKind.FULL_TEXT),
        FieldSpec(name="postal_code", kind=FieldKind.EXACT),
        FieldSpec(name="location", kind=FieldKind.GEO),
        FieldSpec(name="forwarding_address", cascade_depth=1),
    ],
    registry=registry,
)

register_record_type(
    Elf,
    [
        FieldSpec(name="id", kind=FieldKind.EXACT, is_id=True),
        FieldSpec(name="first_name", kind=FieldKind.EXACT),
        FieldSpec(name="last_name", kind=FieldKind.EXACT),
        FieldSpec(name="age", kind=FieldKind.NUMERIC, sortable=True),
        FieldSpec(name="home_address", cascade_depth=2),
        FieldSpec(name="work_address", json_paths=("$.postal_code", "$location")),
    ],
    index_name="Elves",
    prefixes=["Elf"],
    registry=registry,
)


def print_header(title):
    """Print a formatted header."""
    print("\n" + "=" * 60)
    print(f"🎄 {title}")
    print("=" * 60)


async def demo_elves(url: Optional[str] = None):
    """Main demonstration function."""
    print_header("Elves Demo")
    print_configuration()

    async with ConnectionProvider(url, registry=registry) as provider:
        await provider.flush()
        handle = await provider.create_index(Elf)
        print(f"\n📝 Index '{handle.name}' ready on '{handle.physical_name}'")

        buddy = Elf(
            first_name="Buddy",
            last_name="Hobbs",
            age=30,
            home_address=Address(street_address="55 Central Park West", postal_code="10023",
                                 location=GeoLoc(-73.979, 40.772)),
            work_address=Address(street_address="119 West 31st Street", postal_code="10001",
                                 location=GeoLoc(-73.991, 40.748)),
        )
        bernard = Elf(
            first_name="Bernard",
            last_name="The Arch Elf",
            age=1530,
            home_address=Address(street_address="101 St Nicholas Dr", postal_code="99705",
                                 location=GeoLoc(-147.343, 64.755)),
            work_address=Address(street_address="101 St Nicholas Dr", postal_code="99705",
                                 location=GeoLoc(-147.343, 64.755)),
        )

        elves = provider.collection(Elf)
        await elves.insert(buddy)
        await elves.insert(bernard)
        print(f"✅ Inserted {buddy.first_name} ({buddy.id}) and {bernard.first_name} ({bernard.id})")

        async for elf in elves.query(Eq("work_address.postal_code", "99705")):
            print(f"{elf.first_name} works in the 99705 postal code")

        near_macys = elves.query(GeoRadius("home_address.location", -73.991, 40.750, 2, DistanceUnit.MILES))
        async for elf in near_macys:
            print(f"{elf.first_name} is near Macy's")


async def main():
    """Main function."""
    await demo_elves()


if __name__ == "__main__":
    asyncio.run(main())

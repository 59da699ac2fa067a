import asyncio

from in_memory_db import InMemoryDB


def test_find_one_matches_on_equality_and_hides_fields():
    db = InMemoryDB()

    async def run():
        await db.enquiries.insert_one({"_id": 1, "id": "a", "status": "new"})
        await db.enquiries.insert_one({"_id": 2, "id": "b", "status": "new"})
        return (
            await db.enquiries.find_one({"id": "b"}, {"_id": 0}),
            await db.enquiries.find_one({"id": "a", "status": "closed"}),
        )

    found, missing = asyncio.run(run())
    assert found == {"id": "b", "status": "new"}
    assert missing is None


def test_inserted_documents_are_copied():
    db = InMemoryDB()
    doc = {"id": "a", "tags": ["x"]}
    asyncio.run(db.enquiries.insert_one(doc))
    doc["tags"].append("y")
    assert db.enquiries.data[0]["tags"] == ["x"]

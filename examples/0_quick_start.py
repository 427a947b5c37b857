import asyncio
import json

from chatstore import ChatRecords, FSSnapshotPersistence, KeyValueStore, UserRecords, get_stats


async def main() -> None:
    # open the store on a local data dir -- items.json + groups.json live here
    async with KeyValueStore(FSSnapshotPersistence("./chatstore_data")) as store:
        chats = ChatRecords(store)
        users = UserRecords(store)

        await users.insert_user({"email": "ada@example.com", "id": "u1", "name": "Ada"})

        # chats are bucketed by userId, so listing a user's chats is one lookup
        await chats.insert_chat({"id": "c1", "userId": "u1", "title": "hi"})
        res = await chats.insert_chat({"id": "c2", "userId": "u1", "title": "yo"})
        if not res.durable:
            print(f"saved in memory only: {res.error}")

        for chat in await chats.get_chats_by_user_id("u1"):
            print(chat["id"], chat["title"])

        stats = await get_stats(store)
        print(json.dumps(stats.to_dict(), indent=2))

        # drop everything the user owns
        await chats.delete_chats_by_user_id("u1")
        print("after clear:", await chats.get_chats_by_user_id("u1"))


if __name__ == "__main__":
    asyncio.run(main())

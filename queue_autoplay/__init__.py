from __future__ import annotations

__red_end_user_data_statement__ = "This cog does not persist any end user data."


async def setup(bot) -> None:
    from .cog import QueueAutoplay

    await bot.add_cog(QueueAutoplay(bot))

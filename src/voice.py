"""Reply text for the bot's persona: loud, upbeat, slightly chaotic."""

import random
from typing import Optional, Sequence

# Context recovery looks for this exact phrase in the bot's own replies
NEW_PROJECT_MARKER = "NEW PROJECT ALERT!"

SUCCESS_REACTIONS = [
    "🎉 BOOM! DID IT!",
    "✨ BAM! FEATURE ADDED!",
    "🚀 TO THE MOON!",
    "💥 POW! RIGHT IN THE DATABASE!",
    "🤖 ROBOT SAYS: SUCCESS!",
]

CONFUSED_REACTIONS = [
    "😰 UHHH...",
    "🤖 PROCESSING... ERROR!",
    "😅 OOPSIE!",
    "🤔 HMMMM...",
    "⚠️ SYSTEM CONFUSION!",
]

ANNOUNCEMENT_INTROS = [
    "🚨 NEW FEATURE ALERT!",
    "📋 HOT NEW REQUEST!",
    "✨ FRESH SUGGESTION!",
    "🎯 NEW FEATURE DROP!",
]


def celebrate() -> str:
    return random.choice(SUCCESS_REACTIONS)


def confused() -> str:
    return random.choice(CONFUSED_REACTIONS)


def feature_created(title: str, project: str) -> str:
    return (
        f"{celebrate()}\n\n"
        f'✅ Added "{title}" to {project}!\n'
        "Your feedback is now IN THE SYSTEM! 🎯\n\n"
        "Keep 'em coming, you beautiful genius!"
    )


def features_created(items: Sequence[tuple[str, int]]) -> str:
    """Numbered list of (title, sub-item count) pairs."""
    lines = [f"{celebrate()}\n", f"✅ Added {len(items)} features!"]
    for i, (title, sub_items) in enumerate(items, start=1):
        line = f"{i}. {title}"
        if sub_items:
            line += f" (+{sub_items} options)"
        lines.append(line)
    lines.append("\nKeep 'em coming! 🎯")
    return "\n".join(lines)


def feature_merged(title: str, project: str) -> str:
    return (
        f"{celebrate()}\n\n"
        "🔄 MERGED MODE ACTIVATED!\n"
        f'Found "{title}" already on the {project} roadmap!\n'
        "Your voice has been ADDED to the chorus! 🗣️\n\n"
        "Democracy in ACTION!"
    )


def mixed_results(created_title: Optional[str], merged_title: Optional[str], site_url: str) -> str:
    text = f"{celebrate()}\n\n"
    if created_title:
        text += f"✅ Created: {created_title}\n"
    if merged_title:
        text += f"🔗 Merged: {merged_title}\n"
    text += f"\nVote at {site_url.removeprefix('https://').removeprefix('http://')}"
    return text


def no_parent_cast(bot_handle: str) -> str:
    return (
        f"{confused()}\n\n"
        "⚠️ WHOOPS! I need something to work with!\n\n"
        "Reply to a cast with feedback and I'll add it!\n\n"
        "Example:\n"
        '👤 Someone: "I wish there was dark mode"\n'
        f'🤖 You: "@{bot_handle} for @base"\n'
        "💥 BOOM! Feature added!\n\n"
        "Or reply to me if I ask for more info!"
    )


def rate_limited(limit: int) -> str:
    return (
        "😱 SLOW DOWN THERE, SPEED DEMON!\n\n"
        f"You've hit your daily limit ({limit} features/day).\n"
        "Come back TOMORROW for more feature-adding fun!\n\n"
        "🌙 Goodbye for now!"
    )


def low_trust_score() -> str:
    return (
        "🤖 BEEP BOOP!\n\n"
        "My spam sensors are TINGLING!\n"
        "Your account needs a bit more... credibility.\n\n"
        "Keep being awesome on Farcaster and try again later!\n"
        "🎖️ Quality over quantity, friend!"
    )


def no_project_detected(bot_handle: str) -> str:
    return (
        f"{confused()}\n\n"
        "🎯 I can't figure out WHICH PROJECT you mean!\n\n"
        "Help me help YOU! Try:\n"
        f'• "@{bot_handle} for @base" - with @handle\n'
        f'• "@{bot_handle} @base" - just tag it!\n\n'
        "What project needs this feature? TELL ME!"
    )


def multiple_projects(projects: Sequence[tuple[str, str]]) -> str:
    """Ask which of several (handle, name) projects was meant."""
    listing = "\n".join(f"• @{handle} ({name})" for handle, name in projects)
    return (
        f"{confused()}\n\n"
        "🤖 WHOOPS! Too many projects detected!\n\n"
        f"Which one do you mean?\n\n{listing}\n\n"
        "Reply with the project name and I'll get right on it!"
    )


def project_not_found(handles: Sequence[str]) -> str:
    names = " and ".join(f"@{h}" for h in handles)
    return (
        "❌ OH NOES!\n\n"
        f"I looked for {names} but... THEY'RE NOT IN MY DATABASE!\n\n"
        "Want to CREATE a new project?\n"
        "Just mention it and I'll guide you through the setup!\n\n"
        "🆕 New project who dis?"
    )


def new_project_detected(candidates: Sequence[str]) -> str:
    names = " and ".join(f"@{c}" for c in candidates)
    return (
        f"🆕 {NEW_PROJECT_MARKER} {names}!\n\n"
        "Let's get this set up! Reply with:\n\n"
        "• Owner (@username or FID)\n"
        '• Token address (or "clanker" for default)\n\n'
        "Example:\n"
        '"Owner: @peth, Token: clanker"\n\n'
        '"Owner: 2513548, Token: 0x1234..."\n\n'
        f"I'll grab the project's bio from @{candidates[0]}'s Farcaster profile! 📝\n\n"
        "Let's make it happen! 💪"
    )


def no_feature_extracted(bot_handle: str) -> str:
    return (
        f"{confused()}\n\n"
        "🤖 I'm reading... I'm reading...\n\n"
        "BUT I CAN'T FIND A CLEAR FEATURE!\n\n"
        "Try being more SPECIFIC:\n"
        '• "Add dark mode" ✅\n'
        '• "Fix login bug" ✅\n'
        '• "Add search to homepage" ✅\n\n'
        '❌ "This sucks" - too vague!\n'
        '❌ "Fix it" - fix what?!\n\n'
        f'Reply to feedback with "@{bot_handle} for @project"\n\n'
        "Give me DETAILS, human!"
    )


def owner_not_found(owner: str) -> str:
    return (
        "😱 UHHH...\n\n"
        f'I can\'t find owner "{owner}"!\n\n'
        "Make sure the username or FID is correct.\n"
        "Try again with a valid @username or FID!\n\n"
        "🤖 Confused robot needs help!"
    )


def could_not_determine_project(bot_handle: str) -> str:
    return (
        "😰 OOPSIE!\n\n"
        "I can't figure out WHICH PROJECT you're setting up!\n\n"
        "Try starting over:\n"
        f"1. Mention @{bot_handle} with the new project\n"
        "2. Reply with owner and token\n\n"
        f'Example: "@{bot_handle} for @newproject"\n\n'
        "Then I'll know what we're doing!"
    )


def project_created(name: str, handle: str, voting_type: str, owner_username: str, bot_handle: str) -> str:
    voting = "🪙 Token" if voting_type == "token" else "⭐ Score"
    return (
        f"{celebrate()}\n\n"
        "🎉 PROJECT CREATED!\n\n"
        f"Name: {name}\n"
        f"Handle: @{handle}\n"
        f"Owner: @{owner_username}\n"
        f"Voting: {voting}\n\n"
        "Start adding features! Just reply to a cast with:\n"
        f'"@{bot_handle} for @{handle}"\n\n'
        "Let's goooo! 🚀"
    )


def project_exists(handle: str) -> str:
    return (
        f"{confused()}\n\n"
        f"@{handle} is ALREADY on the roadmap board!\n\n"
        "Reply to feedback with its handle and I'll add features to it."
    )


def parent_cast_not_found() -> str:
    return (
        "😱 GHOST CAST!\n\n"
        "I can't find that cast... spooky! 👻\n\n"
        "Maybe it was deleted? Or I'm glitching?\n"
        "Either way, TRY AGAIN!"
    )


def generic_error(error: Optional[str] = None) -> str:
    text = (
        f"{confused()}\n\n"
        "⚠️ SOMETHING WENT WRONG!\n"
        "My robot brain is confused...\n\n"
        "Try again? Or scream into the void! 🗣️"
    )
    if error:
        text += f"\n\nError: {error}"
    return text


def announcement(title: str, username: str, feature_id: str, site_url: str) -> str:
    return (
        f"{random.choice(ANNOUNCEMENT_INTROS)}\n\n"
        f'"{title}"\n\n'
        f"👤 Suggested by @{username}\n"
        f"🗳️ Vote: {site_url.rstrip('/')}/features/{feature_id}\n\n"
        "Make your voice heard! 📢"
    )

"""Built-in content returned before an admin has saved anything."""

from typing import List

from schemas import (
    Course,
    CourseVideo,
    ExamYearStars,
    FreeVideo,
    HeroStat,
    SiteSettings,
)

DEFAULT_TOP_STAR_YEARS = ["2026", "2027", "2028", "2029"]


def default_settings() -> SiteSettings:
    return SiteSettings(
        free_videos=[FreeVideo(id="dQw4w9WgXcQ", title="Introduction to Mechanics")],
        gallery_images=[
            "https://images.unsplash.com/photo-1532094349884-543bc11b234d?auto=format&fit=crop&q=80&w=800",
            "https://images.unsplash.com/photo-1509062522246-3755977927d7?auto=format&fit=crop&q=80&w=800",
            "https://images.unsplash.com/photo-1516534775068-ba3e84529519?auto=format&fit=crop&q=80&w=800",
        ],
        contact_email="contact@example.com",
        contact_phone="",
        bank_details="",
        hero_badge="The best physics class on the island",
        hero_title="Remember the goal and never give up",
        hero_subtitle="Premium physics coaching for A/L students.",
        hero_tutor_image="https://images.unsplash.com/photo-1544717297-fa154daaf762?auto=format&fit=crop&q=80&w=400",
        hero_stats=[
            HeroStat(label="Active Students", value="12k+"),
            HeroStat(label="Island Ranks", value="250+"),
            HeroStat(label="Experience", value="15+ Years"),
            HeroStat(label="Courses", value="50+"),
        ],
        top_stars=[ExamYearStars(year=y) for y in DEFAULT_TOP_STAR_YEARS],
    )


def default_courses() -> List[Course]:
    return [
        Course(
            id="course-mechanics",
            title="Mechanics Theory",
            description="Full theory module covering kinematics and dynamics.",
            price=3500,
            thumbnail="https://images.unsplash.com/photo-1635070041078-e363dbe005cb?auto=format&fit=crop&q=80&w=800",
            duration_minutes=120,
            videos=[CourseVideo(id="", title="Lesson 1")],
        ),
    ]

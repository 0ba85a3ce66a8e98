"""Built-in section templates.

A fixed catalog of section blueprints users pick from when adding a section.
Lookups are linear over a handful of entries and never raise.
"""

from dataclasses import dataclass, field
from uuid import uuid4

from app.services.section_store import FieldData, SectionData


@dataclass(frozen=True)
class FieldTemplate:
    field_key: str
    field_label: str
    field_type: str
    placeholder: str | None = None
    required: bool = False


@dataclass(frozen=True)
class SectionTemplate:
    section_key: str
    title: str
    description: str
    fields: tuple[FieldTemplate, ...] = field(default_factory=tuple)


@dataclass
class SectionDraft:
    """An unsaved section materialized from a template."""

    section: SectionData
    fields: list[FieldData]


WORK_EXPERIENCE = SectionTemplate(
    section_key="work_experience",
    title="Work Experience",
    description="Share your professional journey and career highlights",
    fields=(
        FieldTemplate("company_name", "Company Name", "text", "e.g. Acme Corporation", True),
        FieldTemplate("job_title", "Job Title", "text", "e.g. Senior Software Engineer", True),
        FieldTemplate("start_date", "Start Date", "date", required=True),
        FieldTemplate("end_date", "End Date", "date", "Leave blank if current position"),
        FieldTemplate(
            "description", "Description", "textarea", "Describe your responsibilities and achievements"
        ),
        FieldTemplate("location", "Location", "text", "e.g. San Francisco, CA"),
    ),
)

EDUCATION = SectionTemplate(
    section_key="education",
    title="Education",
    description="Share your academic background and qualifications",
    fields=(
        FieldTemplate("institution", "Institution", "text", "e.g. Stanford University", True),
        FieldTemplate(
            "degree", "Degree", "text", "e.g. Bachelor of Science in Computer Science", True
        ),
        FieldTemplate("start_date", "Start Date", "date", required=True),
        FieldTemplate("end_date", "End Date", "date", "Leave blank if currently studying"),
        FieldTemplate(
            "description",
            "Description",
            "textarea",
            "Describe your studies, achievements, and activities",
        ),
        FieldTemplate("gpa", "GPA", "text", "e.g. 3.8/4.0"),
    ),
)

PROJECTS = SectionTemplate(
    section_key="projects",
    title="Projects",
    description="Showcase your notable projects and accomplishments",
    fields=(
        FieldTemplate("project_name", "Project Name", "text", "e.g. Personal Portfolio Website", True),
        FieldTemplate("role", "Your Role", "text", "e.g. Lead Developer"),
        FieldTemplate("start_date", "Start Date", "date"),
        FieldTemplate("end_date", "End Date", "date", "Leave blank if ongoing"),
        FieldTemplate(
            "description",
            "Description",
            "textarea",
            "Describe the project, your contributions, and outcomes",
            True,
        ),
        FieldTemplate(
            "project_url", "Project URL", "url", "e.g. https://github.com/yourusername/project"
        ),
    ),
)

SKILLS = SectionTemplate(
    section_key="skills",
    title="Skills",
    description="Highlight your technical and professional skills",
    fields=(
        FieldTemplate(
            "skill_category",
            "Skill Category",
            "text",
            "e.g. Programming Languages, Design Tools, Soft Skills",
            True,
        ),
        FieldTemplate("skills_list", "Skills", "textarea", "List your skills, separated by commas", True),
        FieldTemplate(
            "proficiency_level",
            "Proficiency Level",
            "text",
            "Beginner, Intermediate, Advanced or Expert",
        ),
    ),
)

CERTIFICATIONS = SectionTemplate(
    section_key="certifications",
    title="Certifications",
    description="List your professional certifications and credentials",
    fields=(
        FieldTemplate(
            "certification_name",
            "Certification Name",
            "text",
            "e.g. AWS Certified Solutions Architect",
            True,
        ),
        FieldTemplate(
            "issuing_organization", "Issuing Organization", "text", "e.g. Amazon Web Services", True
        ),
        FieldTemplate("issue_date", "Issue Date", "date", required=True),
        FieldTemplate("expiration_date", "Expiration Date", "date", "Leave blank if no expiration"),
        FieldTemplate("credential_id", "Credential ID", "text", "e.g. ABC123XYZ"),
        FieldTemplate(
            "credential_url", "Credential URL", "url", "e.g. https://www.credential.net/abc123xyz"
        ),
    ),
)

PUBLICATIONS = SectionTemplate(
    section_key="publications",
    title="Publications",
    description="Share your research papers, articles, and other publications",
    fields=(
        FieldTemplate(
            "title", "Title", "text", 'e.g. "Machine Learning Applications in Finance"', True
        ),
        FieldTemplate("authors", "Authors", "text", "e.g. John Doe, Jane Smith", True),
        FieldTemplate("publication_date", "Publication Date", "date", required=True),
        FieldTemplate(
            "publisher", "Publisher/Journal", "text", "e.g. IEEE Transactions on Neural Networks"
        ),
        FieldTemplate(
            "description", "Abstract/Description", "textarea", "Brief summary of the publication"
        ),
        FieldTemplate("publication_url", "URL", "url", "Link to the publication"),
    ),
)

VOLUNTEER_EXPERIENCE = SectionTemplate(
    section_key="volunteer_experience",
    title="Volunteer Experience",
    description="Highlight your community service and volunteer work",
    fields=(
        FieldTemplate("organization", "Organization", "text", "e.g. Red Cross", True),
        FieldTemplate("role", "Role", "text", "e.g. Volunteer Coordinator", True),
        FieldTemplate("start_date", "Start Date", "date", required=True),
        FieldTemplate("end_date", "End Date", "date", "Leave blank if currently volunteering"),
        FieldTemplate(
            "description", "Description", "textarea", "Describe your responsibilities and impact"
        ),
        FieldTemplate("location", "Location", "text", "e.g. New York, NY"),
    ),
)

AWARDS = SectionTemplate(
    section_key="awards",
    title="Awards & Honors",
    description="Showcase your recognition and achievements",
    fields=(
        FieldTemplate("award_name", "Award Name", "text", "e.g. Employee of the Year", True),
        FieldTemplate("issuer", "Issuing Organization", "text", "e.g. Acme Corporation", True),
        FieldTemplate("date", "Date Received", "date", required=True),
        FieldTemplate(
            "description", "Description", "textarea", "Describe the award and why you received it"
        ),
    ),
)

BIO = SectionTemplate(
    section_key="bio",
    title="About Me",
    description="Tell your story and share what makes you unique",
    fields=(
        FieldTemplate(
            "bio",
            "Biography",
            "textarea",
            "Share your professional journey, interests, and aspirations",
            True,
        ),
        FieldTemplate(
            "interests", "Interests & Hobbies", "textarea", "What do you enjoy doing outside of work?"
        ),
        FieldTemplate("fun_fact", "Fun Fact", "text", "Share something interesting about yourself"),
    ),
)

SECTION_TEMPLATES: tuple[SectionTemplate, ...] = (
    WORK_EXPERIENCE,
    EDUCATION,
    PROJECTS,
    SKILLS,
    CERTIFICATIONS,
    PUBLICATIONS,
    VOLUNTEER_EXPERIENCE,
    AWARDS,
    BIO,
)


def all_section_templates() -> list[SectionTemplate]:
    return list(SECTION_TEMPLATES)


def get_template_by_key(key: str | None) -> SectionTemplate | None:
    for template in SECTION_TEMPLATES:
        if template.section_key == key:
            return template
    return None


def create_section_from_template(key: str, profile_id: str) -> SectionDraft | None:
    """
    Materialize a template into a draft section with fresh ids and empty values.

    Nothing is persisted; the caller decides where the draft goes.
    """
    template = get_template_by_key(key)
    if template is None:
        return None

    section = SectionData(
        id=str(uuid4()),
        profile_id=str(profile_id),
        title=template.title,
        section_key=template.section_key,
        display_order=0,
    )
    fields = [
        FieldData(
            id=str(uuid4()),
            section_id=section.id,
            field_key=f.field_key,
            field_label=f.field_label,
            field_value="",
            field_type=f.field_type,
            display_order=index,
        )
        for index, f in enumerate(template.fields)
    ]
    return SectionDraft(section=section, fields=fields)

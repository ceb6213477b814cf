from __future__ import annotations


def build_marketing_prompt(category_name: str, model_type_name: str | None = None) -> str:
    if model_type_name and model_type_name.strip():
        subject = (
            f'The image should feature a {model_type_name.strip().lower()} model showcasing the product '
            'in an elegant, high-quality commercial photography style.'
        )
    else:
        subject = 'The image should showcase the product on its own in an elegant, high-quality commercial photography style.'
    return (
        f'Create a professional marketing image for a {category_name.strip()} product. '
        f'{subject} '
        'The composition should be well-lit with professional lighting, clean background, '
        'and focus on making the product look premium and desirable. '
        'Style: commercial photography, professional, high-end marketing material.'
    )


def build_caption_prompt(category_name: str | None = None) -> str:
    category_context = f'for a {category_name} business. ' if category_name else ''
    return (
        f'Analyze this marketing image {category_context}and generate:\n'
        '1. A compelling, engaging social media caption (2-3 sentences) suitable for Instagram, '
        'Facebook, and LinkedIn\n'
        '2. A set of 8-12 relevant, popular hashtags to maximize engagement\n'
        '\n'
        "Keep the caption professional yet engaging, highlighting the product's appeal and value proposition.\n"
        'Format your response as JSON with this exact structure:\n'
        '{\n'
        '  "caption": "your caption here",\n'
        '  "hashtags": ["hashtag1", "hashtag2", ...]\n'
        '}'
    )
